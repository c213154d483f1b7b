"""
defunc.tracing.context: the process-wide state behind traced calls.

A :class:`TraceContext` owns the nesting depth, the lifetime auditor, the
lock serializing sink writes and the default sink. One context is active at
a time; :func:`use_context` and :func:`capture` swap it for a scope.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from typing import Any, Callable, Iterator, Optional

from ..config import TraceConfig
from ..sink import ListSink, Sink, StreamSink, as_sink
from .events import TraceEvent
from .lifetime import LifetimeAuditor
from .registry import sink_for

logger = logging.getLogger(__name__)

__all__ = [
    "TraceContext",
    "capture",
    "configure",
    "get_context",
    "use_context",
]


class TraceContext:
    def __init__(
        self,
        config: Optional[TraceConfig] = None,
        sink: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or TraceConfig()
        self.sink: Sink = as_sink(sink) if sink is not None else StreamSink()
        self.clock = clock
        self.lock = threading.RLock()
        self._local = threading.local()
        self._shared_depth = 0
        self.auditor = LifetimeAuditor(
            clock=clock,
            threshold=lambda: self.config.stale_threshold,
            emit=self.emit_line,
            lock=self.lock,
        )

    # ---- depth -----------------------------------------------------------

    @property
    def depth(self) -> int:
        if self.config.thread_local_depth:
            return getattr(self._local, "depth", 0)
        return self._shared_depth

    def push(self) -> int:
        """Open one nesting level and return the depth before it."""
        step = self.config.indent_step
        if self.config.thread_local_depth:
            current = getattr(self._local, "depth", 0)
            self._local.depth = current + step
            return current
        with self.lock:
            current = self._shared_depth
            self._shared_depth = current + step
            return current

    def pop(self) -> None:
        step = self.config.indent_step
        if self.config.thread_local_depth:
            self._local.depth = max(getattr(self._local, "depth", 0) - step, 0)
            return
        with self.lock:
            self._shared_depth = max(self._shared_depth - step, 0)

    # ---- emission --------------------------------------------------------

    @property
    def suspended(self) -> bool:
        """True while this thread is formatting a line."""
        return getattr(self._local, "suspended", False)

    def emit_line(self, owner: Optional[type], line: str) -> None:
        sink = sink_for(owner) if owner is not None else None
        if sink is None:
            sink = self.sink
        with self.lock:
            sink.write_line(line)

    def emit(self, owner: Optional[type], event: TraceEvent) -> None:
        # repr() of arguments may call back into traced code
        self._local.suspended = True
        try:
            line = event.render()
        finally:
            self._local.suspended = False
        self.emit_line(owner, line)

    def reset(self) -> None:
        """Drop depth and live-instance state."""
        with self.lock:
            self._shared_depth = 0
            self._local = threading.local()
            self.auditor.clear()

    def __repr__(self) -> str:
        return (
            f"TraceContext(depth={self.depth}, live={self.auditor.live_count}, "
            f"sink={self.sink!r})"
        )


_active_context: TraceContext = TraceContext(config=TraceConfig.from_env())


def get_context() -> TraceContext:
    return _active_context


@contextlib.contextmanager
def use_context(ctx: TraceContext) -> Iterator[TraceContext]:
    """Activate *ctx* for the duration of the ``with`` block."""
    global _active_context
    previous = _active_context
    _active_context = ctx
    try:
        yield ctx
    finally:
        _active_context = previous


def configure(**changes: Any) -> TraceConfig:
    """Update fields of the active context's config.

    Meant to be called once at process start, before traced types are
    declared: ``trace_all`` is consulted when operations are intercepted.
    """
    ctx = get_context()
    ctx.config = ctx.config.updated(**changes)
    logger.info("configure: %s", changes)
    return ctx.config


@contextlib.contextmanager
def capture(
    clock: Callable[[], float] = time.monotonic, **config: Any
) -> Iterator[ListSink]:
    """
    Context manager: collect trace output of a block in memory.

    Example::

        with defunc.capture() as out:
            Random.random()
        assert out.lines == ["enter random: []", "exit random: 5 (...)"]

    Types with their own sink keep writing there.
    """
    sink = ListSink()
    ctx = TraceContext(config=TraceConfig(**config), sink=sink, clock=clock)
    with use_context(ctx):
        yield sink
