from __future__ import annotations

import enum
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..sink import Sink, as_sink

logger = logging.getLogger(__name__)


class Scope(str, enum.Enum):
    STATIC = "static"
    INSTANCE = "instance"


@dataclass
class WatchSet:
    """Allow-lists of operation names, one per scope.

    dicts are used as insertion-ordered sets.
    """

    static: dict[str, None] = field(default_factory=dict)
    instance: dict[str, None] = field(default_factory=dict)

    def names(self, scope: Scope) -> dict[str, None]:
        return self.static if scope is Scope.STATIC else self.instance

    def add(self, scope: Scope, names: Iterable[str]) -> None:
        target = self.names(scope)
        for name in names:
            target.setdefault(name, None)

    def allows(self, scope: Scope, name: str, trace_all: bool) -> bool:
        listed = self.names(scope)
        if listed:
            return name in listed
        return trace_all


@dataclass
class TypeConfig:
    type_name: str
    watch: Optional[WatchSet] = None
    sink: Optional[Sink] = None
    audit: Optional[bool] = None


# Weak keys so registering a class never keeps it alive.
_registered_types: "weakref.WeakKeyDictionary[type, TypeConfig]" = weakref.WeakKeyDictionary()


def _validate_names(names: Iterable[Any]) -> list[str]:
    out: list[str] = []
    for name in names:
        if not isinstance(name, str) or not name:
            raise TypeError(f"watched names must be non-empty strings, got {name!r}")
        out.append(name)
    return out


def register(cls: type, type_name: str = "") -> TypeConfig:
    """Return the config owned by *cls*, creating it on first use."""
    info = _registered_types.get(cls)
    if info is None:
        info = TypeConfig(type_name=type_name or cls.__name__)
        _registered_types[cls] = info
        logger.info("register: %s", info.type_name)
    elif type_name:
        info.type_name = type_name
    return info


def is_registered(cls: type) -> bool:
    return any(klass in _registered_types for klass in cls.__mro__)


def registered_types() -> list[type]:
    return list(_registered_types)


def unregister(cls: type) -> bool:
    return _registered_types.pop(cls, None) is not None


def watch(cls: type, *names: str, scope: Scope = Scope.INSTANCE) -> WatchSet:
    checked = _validate_names(names)
    info = register(cls)
    if info.watch is None:
        info.watch = WatchSet()
    info.watch.add(Scope(scope), checked)
    logger.debug("watch: %s %s=%s", info.type_name, Scope(scope).value, checked)
    return info.watch


def set_out_stream(cls: type, sink: Any) -> Sink:
    info = register(cls)
    info.sink = as_sink(sink)
    return info.sink


def enable_audit(cls: type, enabled: bool = True) -> None:
    register(cls).audit = bool(enabled)


def _lookup(cls: type, attr: str) -> Any:
    for klass in cls.__mro__:
        info = _registered_types.get(klass)
        if info is not None and getattr(info, attr) is not None:
            return getattr(info, attr)
    return None


def _names_for(cls: type, scope: Scope) -> dict[str, None]:
    # each scope is inherited on its own: the first non-empty list in the MRO
    for klass in cls.__mro__:
        info = _registered_types.get(klass)
        if info is None or info.watch is None:
            continue
        names = info.watch.names(scope)
        if names:
            return names
    return {}


def watch_set_for(cls: type) -> WatchSet:
    return WatchSet(
        static=dict(_names_for(cls, Scope.STATIC)),
        instance=dict(_names_for(cls, Scope.INSTANCE)),
    )


def sink_for(cls: type) -> Optional[Sink]:
    return _lookup(cls, "sink")


def audit_enabled(cls: type) -> bool:
    if not is_registered(cls):
        return False
    audit = _lookup(cls, "audit")
    return True if audit is None else audit


def type_name_for(cls: type) -> str:
    info = _registered_types.get(cls)
    return info.type_name if info is not None else cls.__name__


def should_trace(
    cls: type, scope: Scope, name: str, trace_all: Optional[bool] = None
) -> bool:
    if trace_all is None:
        from .context import get_context

        trace_all = get_context().config.trace_all
    return watch_set_for(cls).allows(Scope(scope), name, trace_all)
