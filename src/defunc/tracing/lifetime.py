"""
defunc.tracing.lifetime: staleness auditing of live instances.

Each tracked instance gets a creation timestamp. When the instance goes away
(observed through ``weakref.finalize`` or an explicit :meth:`release`) its
age is compared with the threshold and a ``Collecting ...`` line is emitted
for instances that stayed around too long.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)

__all__ = ["LifetimeAuditor", "LiveInstanceRecord", "staleness_line"]


@dataclass(frozen=True)
class LiveInstanceRecord:
    ident: int
    owner: type
    type_name: str
    created_at: float


def staleness_line(type_name: str, ident: int, elapsed: float) -> str:
    return (
        f"Collecting {type_name} with id {ident} which stayed "
        f"in memory for {elapsed:.3f}s"
    )


class LifetimeAuditor:
    """
    Live-instance bookkeeping shared by every audited type of a context.

    Parameters
    ----------
    clock : callable
        Returns the current time in seconds.
    threshold : callable
        Returns the staleness threshold in seconds. Read at collection time
        so reconfiguring the context applies to instances already alive.
    emit : callable
        ``emit(owner_type, line)``. Called with the lock held.
    lock : threading.RLock | None
        Serializes mutations with the owning context's sink writes.
    """

    def __init__(
        self,
        clock: Callable[[], float],
        threshold: Callable[[], float],
        emit: Callable[[type, str], None],
        lock: Optional[threading.RLock] = None,
    ):
        self._clock = clock
        self._threshold = threshold
        self._emit = emit
        self._lock = lock if lock is not None else threading.RLock()
        self._records: dict[int, LiveInstanceRecord] = {}
        self._finalizers: dict[int, weakref.finalize] = {}
        self._unreferenceable: "weakref.WeakSet[type]" = weakref.WeakSet()

    # ---- construction ----------------------------------------------------

    def track(
        self, obj: Any, type_name: str = "", require_weakref: bool = False
    ) -> bool:
        """Record *obj* as alive.

        Returns ``False`` if it was already known, or if *require_weakref* is
        set and *obj* cannot carry a finalizer. Objects tracked without a
        finalizer stay recorded until :meth:`release` is called.
        """
        ident = id(obj)
        owner = type(obj)
        with self._lock:
            if ident in self._records:
                return False
            try:
                finalizer = weakref.finalize(obj, self.collect, ident)
            except TypeError:
                if require_weakref:
                    if owner not in self._unreferenceable:
                        self._unreferenceable.add(owner)
                        logger.warning(
                            "track: %s instances are not weak-referenceable "
                            "and are not audited",
                            owner.__name__,
                        )
                    return False
                finalizer = None
            else:
                finalizer.atexit = False
                self._finalizers[ident] = finalizer
            self._records[ident] = LiveInstanceRecord(
                ident=ident,
                owner=owner,
                type_name=type_name or owner.__name__,
                created_at=self._clock(),
            )
        if finalizer is None:
            logger.debug("track: %s id=%d needs release()", owner.__name__, ident)
        else:
            logger.debug("track: %s id=%d", owner.__name__, ident)
        return True

    # ---- deallocation ----------------------------------------------------

    def collect(self, ident: int) -> Optional[float]:
        """Handle a deallocation notice for *ident*.

        Returns the instance age, or ``None`` when *ident* is not tracked
        (repeated notices are ignored).
        """
        with self._lock:
            finalizer = self._finalizers.pop(ident, None)
            if finalizer is not None:
                finalizer.detach()
            record = self._records.pop(ident, None)
            if record is None:
                return None
            elapsed = self._clock() - record.created_at
            if elapsed > self._threshold():
                self._emit(record.owner, staleness_line(record.type_name, ident, elapsed))
        logger.debug("collect: %s id=%d age=%.3fs", record.type_name, ident, elapsed)
        return elapsed

    def release(self, obj: Any) -> Optional[float]:
        """Report *obj* as gone now, without waiting for the collector."""
        return self.collect(id(obj))

    @contextlib.contextmanager
    def audited(self, obj: Any) -> Iterator[Any]:
        self.track(obj)
        try:
            yield obj
        finally:
            self.release(obj)

    # ---- introspection ---------------------------------------------------

    @property
    def live_count(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, obj: Any) -> bool:
        record = self._records.get(id(obj))
        return record is not None and record.owner is type(obj)

    def records(self) -> list[LiveInstanceRecord]:
        with self._lock:
            return list(self._records.values())

    def stale_records(self) -> list[LiveInstanceRecord]:
        now = self._clock()
        limit = self._threshold()
        return [r for r in self.records() if now - r.created_at > limit]

    def clear(self) -> None:
        """Forget every record and detach pending finalizers."""
        with self._lock:
            for finalizer in self._finalizers.values():
                finalizer.detach()
            self._finalizers.clear()
            self._records.clear()
