from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .context import get_context
from .events import Phase, TraceEvent
from .registry import Scope, should_trace, type_name_for

logger = logging.getLogger(__name__)

RESERVED_NAMES = frozenset(
    {
        "__new__",
        "__init_subclass__",
        "__class_getitem__",
        "__subclasshook__",
        "__set_name__",
        "__repr__",
        "__str__",
        "__format__",
        "__del__",
        "__getattribute__",
        "__getattr__",
        "__setattr__",
        "__delattr__",
    }
)
RESERVED_PREFIX = "_defunc_"


@dataclass
class InterceptedOp:
    owner: type
    scope: Scope
    name: str
    original: Any
    wrapper: Any


# (owner, scope, name) -> InterceptedOp
_intercepted: dict[tuple[type, Scope, str], InterceptedOp] = {}


def is_reserved(name: str) -> bool:
    return name in RESERVED_NAMES or name.startswith(RESERVED_PREFIX)


def scope_of(member: Any) -> Optional[Scope]:
    """Scope of a class-body attribute, ``None`` for non-operations."""
    if isinstance(member, (staticmethod, classmethod)):
        return Scope.STATIC
    if inspect.isfunction(member):
        return Scope.INSTANCE
    return None


def _operation_label(owner: type, scope: Scope, name: str) -> str:
    if not get_context().config.qualified_names:
        return name
    sep = "." if scope is Scope.STATIC else "#"
    return f"{type_name_for(owner)}{sep}{name}"


def _make_wrapper(owner: type, scope: Scope, name: str, func: Callable, drop_first: bool) -> Callable:
    @functools.wraps(func)
    def traced_call(*args, **kwargs):
        ctx = get_context()
        if ctx.suspended:
            return func(*args, **kwargs)

        label = _operation_label(owner, scope, name)
        shown = args[1:] if drop_first else args
        auditor = ctx.auditor
        live_before = auditor.live_count
        depth = ctx.push()
        try:
            ctx.emit(owner, TraceEvent(depth, Phase.ENTER, label, shown, dict(kwargs)))
            result = func(*args, **kwargs)
        except BaseException as exc:
            ctx.pop()
            ctx.emit(
                owner,
                TraceEvent(
                    depth,
                    Phase.RAISE,
                    label,
                    error=exc,
                    object_delta=auditor.live_count - live_before,
                ),
            )
            raise
        ctx.pop()
        ctx.emit(
            owner,
            TraceEvent(
                depth,
                Phase.EXIT,
                label,
                result=result,
                object_delta=auditor.live_count - live_before,
            ),
        )
        return result

    return traced_call


def intercept(owner: type, scope: Scope, name: str, member: Any) -> Optional[InterceptedOp]:
    """Replace ``owner.<name>`` with a tracing wrapper.

    No-op (returns ``None``) when the name is not watched, is reserved, or
    was already intercepted for this owner and scope.
    """
    scope = Scope(scope)
    key = (owner, scope, name)
    if key in _intercepted or is_reserved(name):
        return None
    if not should_trace(owner, scope, name):
        return None

    if isinstance(member, staticmethod):
        wrapper = staticmethod(_make_wrapper(owner, scope, name, member.__func__, False))
    elif isinstance(member, classmethod):
        wrapper = classmethod(_make_wrapper(owner, scope, name, member.__func__, True))
    elif inspect.isfunction(member):
        wrapper = _make_wrapper(owner, scope, name, member, scope is Scope.INSTANCE)
    else:
        raise TypeError(f"{owner.__name__}.{name} is not a function")

    op = InterceptedOp(owner=owner, scope=scope, name=name, original=member, wrapper=wrapper)
    _intercepted[key] = op
    setattr(owner, name, wrapper)
    logger.debug("intercept: %s.%s scope=%s", owner.__name__, name, scope.value)
    return op


def intercepted_ops(owner: Optional[type] = None) -> list[InterceptedOp]:
    return [op for op in _intercepted.values() if owner is None or op.owner is owner]


def is_intercepted(owner: type, scope: Scope, name: str) -> bool:
    return (owner, Scope(scope), name) in _intercepted


def restore_operations(owner: type) -> int:
    """Put back the original callables of *owner*. Returns how many."""
    ops = intercepted_ops(owner)
    for op in ops:
        if owner.__dict__.get(op.name) is op.wrapper:
            setattr(owner, op.name, op.original)
        del _intercepted[(op.owner, op.scope, op.name)]
    if ops:
        logger.info("restore_operations: %s (%d operations)", owner.__name__, len(ops))
    return len(ops)
