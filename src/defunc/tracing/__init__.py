"""Call interception, depth tracking and lifetime auditing."""

from .context import TraceContext, capture, configure, get_context, use_context
from .declare import (
    Traced,
    TypeBuilder,
    forget,
    instrument,
    instrument_module,
    restore,
    traced,
    watch_methods,
)
from .events import Phase, TraceEvent
from .intercept import InterceptedOp, intercept, intercepted_ops, is_intercepted
from .lifetime import LifetimeAuditor, LiveInstanceRecord
from .registry import (
    Scope,
    WatchSet,
    enable_audit,
    is_registered,
    registered_types,
    set_out_stream,
    should_trace,
    watch,
)

__all__ = [
    "InterceptedOp",
    "LifetimeAuditor",
    "LiveInstanceRecord",
    "Phase",
    "Scope",
    "TraceContext",
    "TraceEvent",
    "Traced",
    "TypeBuilder",
    "WatchSet",
    "capture",
    "configure",
    "enable_audit",
    "forget",
    "get_context",
    "instrument",
    "instrument_module",
    "intercept",
    "intercepted_ops",
    "is_intercepted",
    "is_registered",
    "registered_types",
    "restore",
    "set_out_stream",
    "should_trace",
    "traced",
    "use_context",
    "watch",
    "watch_methods",
]
