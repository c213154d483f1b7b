"""Registration surfaces: the ``traced()`` builder, the ``Traced`` base class,
``watch_methods`` and module-wide instrumentation."""

from __future__ import annotations

import inspect
import logging
import types
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from .context import get_context
from .intercept import InterceptedOp, intercept, restore_operations, scope_of
from .registry import (
    Scope,
    audit_enabled,
    enable_audit,
    register,
    set_out_stream,
    type_name_for,
    unregister,
    watch,
)

logger = logging.getLogger(__name__)

# Classes carrying a hook installed by instrument(). The hook function keeps
# the class dict entry it replaced as ``_defunc_original``.
_constructor_hooked: "weakref.WeakSet[type]" = weakref.WeakSet()
_subclass_hooked: "weakref.WeakSet[type]" = weakref.WeakSet()


def _machinery_types() -> tuple[type, ...]:
    from .context import TraceContext
    from .lifetime import LifetimeAuditor

    return (Traced, TraceContext, LifetimeAuditor, TypeBuilder)


def _is_machinery(cls: type) -> bool:
    return cls in _machinery_types()


def _install_constructor_hook(cls: type) -> None:
    if any(klass in _constructor_hooked for klass in cls.__mro__):
        return

    original = cls.__dict__.get("__new__")
    own_new = original.__func__ if isinstance(original, staticmethod) else original

    def __new__(klass, *args, **kwargs):
        if own_new is not None:
            instance = own_new(klass, *args, **kwargs)
        else:
            parent_new = super(cls, klass).__new__
            if parent_new is object.__new__:
                instance = parent_new(klass)
            else:
                instance = parent_new(klass, *args, **kwargs)
        if isinstance(instance, klass) and audit_enabled(klass):
            get_context().auditor.track(
                instance, type_name_for(klass), require_weakref=True
            )
        return instance

    __new__._defunc_original = original
    cls.__new__ = staticmethod(__new__)
    _constructor_hooked.add(cls)
    logger.debug("constructor hook: %s", cls.__name__)


def _install_subclass_hook(cls: type) -> None:
    # Traced subclasses are configured by Traced.__init_subclass__
    if issubclass(cls, Traced):
        return
    if any(klass in _subclass_hooked for klass in cls.__mro__):
        return

    original = cls.__dict__.get("__init_subclass__")
    own_hook = original.__func__ if isinstance(original, classmethod) else None

    def __init_subclass__(subcls, **kwargs):
        if own_hook is not None:
            own_hook(subcls, **kwargs)
        else:
            super(cls, subcls).__init_subclass__(**kwargs)
        _configure(subcls)

    __init_subclass__._defunc_original = original
    cls.__init_subclass__ = classmethod(__init_subclass__)
    _subclass_hooked.add(cls)
    logger.debug("subclass hook: %s", cls.__name__)


def _remove_hook(cls: type, name: str, hooked: "weakref.WeakSet[type]") -> None:
    if cls not in hooked:
        return
    hooked.discard(cls)
    hook = getattr(cls.__dict__.get(name), "__func__", None)
    if not hasattr(hook, "_defunc_original"):
        return
    if hook._defunc_original is None:
        delattr(cls, name)
    else:
        setattr(cls, name, hook._defunc_original)


def instrument(cls: type) -> list[InterceptedOp]:
    """Intercept the watched operations declared in the body of *cls*."""
    if _is_machinery(cls):
        return []
    register(cls)
    ops: list[InterceptedOp] = []
    for name, member in list(cls.__dict__.items()):
        scope = scope_of(member)
        if scope is None:
            continue
        op = intercept(cls, scope, name, member)
        if op is not None:
            ops.append(op)
    if audit_enabled(cls):
        _install_constructor_hook(cls)
    _install_subclass_hook(cls)
    logger.info(
        "instrument: %s traced=%s",
        type_name_for(cls),
        [op.name for op in ops],
    )
    return ops


def _configure(
    cls: type,
    *,
    type_name: str = "",
    watch_names: Iterable[str] = (),
    watch_static: Iterable[str] = (),
    sink: Any = None,
    audit: Optional[bool] = None,
) -> type:
    register(cls, type_name)
    watch_names = list(watch_names)
    watch_static = list(watch_static)
    if watch_names:
        watch(cls, *watch_names, scope=Scope.INSTANCE)
    if watch_static:
        watch(cls, *watch_static, scope=Scope.STATIC)
    if sink is not None:
        set_out_stream(cls, sink)
    if audit is not None:
        enable_audit(cls, audit)
    instrument(cls)
    return cls


@dataclass
class TypeBuilder:
    explicit_name: str | None = None
    _watch: list[str] = field(default_factory=list)
    _watch_static: list[str] = field(default_factory=list)
    _sink: Any = None
    _audit: Optional[bool] = None

    def __call__(self, target_cls: type) -> type:
        return _configure(
            target_cls,
            type_name=self.explicit_name or "",
            watch_names=self._watch,
            watch_static=self._watch_static,
            sink=self._sink,
            audit=self._audit,
        )

    def named(self, name: str) -> "TypeBuilder":
        self.explicit_name = name
        return self

    def watch(self, *names: str) -> "TypeBuilder":
        self._watch.extend(names)
        return self

    def watch_static(self, *names: str) -> "TypeBuilder":
        self._watch_static.extend(names)
        return self

    def sink(self, sink: Any) -> "TypeBuilder":
        if sink is None:
            raise TypeError("traced().sink(...) expects a sink, got None")
        self._sink = sink
        return self

    def audit(self, enabled: bool = True) -> "TypeBuilder":
        self._audit = bool(enabled)
        return self


def traced(type_name: str | None = None) -> TypeBuilder:
    """Start declaring a traced type.

    Example::

        @defunc.traced().watch("push", "pop").watch_static("empty")
        class Stack:
            ...
    """
    return TypeBuilder(explicit_name=type_name)


class Traced:
    """Base class that instruments every subclass at definition time.

    Configuration is passed as class keywords and inherited by subclasses
    that do not override it::

        class Random(Traced, watch_static=["random"]):
            @staticmethod
            def random():
                return 5
    """

    def __init_subclass__(
        cls,
        *,
        watch: Iterable[str] = (),
        watch_static: Iterable[str] = (),
        sink: Any = None,
        audit: Optional[bool] = None,
        **kwargs: Any,
    ):
        super().__init_subclass__(**kwargs)
        _configure(
            cls,
            watch_names=watch,
            watch_static=watch_static,
            sink=sink,
            audit=audit,
        )


def watch_methods(cls: type, *names: str, static: bool = False) -> list[InterceptedOp]:
    """Watch *names* on an already declared class and instrument it again."""
    watch(cls, *names, scope=Scope.STATIC if static else Scope.INSTANCE)
    return instrument(cls)


def instrument_module(
    module: types.ModuleType,
    *,
    include: Optional[Callable[[type], bool]] = None,
) -> list[type]:
    """Register and instrument every class defined in *module*."""
    done: list[type] = []
    for _name, obj in inspect.getmembers(module, inspect.isclass):
        if obj.__module__ != module.__name__ or _is_machinery(obj):
            continue
        if include is not None and not include(obj):
            continue
        instrument(obj)
        done.append(obj)
    logger.info("instrument_module: %s classes=%d", module.__name__, len(done))
    return done


def restore(cls: type) -> int:
    """Undo :func:`instrument` on *cls*: put back its original operations and
    remove the hooks installed on it. The registration itself is kept.

    Returns the number of operations restored.
    """
    count = restore_operations(cls)
    _remove_hook(cls, "__new__", _constructor_hooked)
    _remove_hook(cls, "__init_subclass__", _subclass_hooked)
    return count


def forget(cls: type) -> int:
    """:func:`restore` *cls* and drop its registration."""
    count = restore(cls)
    if unregister(cls):
        logger.info("forget: %s", cls.__name__)
    return count
