__version__ = "0.1.0"

import contextlib
from typing import Any, Iterator

from .config import TraceConfig
from .sink import CallableSink, ListSink, LoggingSink, Sink, StreamSink, as_sink
from .tracing import (
    InterceptedOp,
    LifetimeAuditor,
    LiveInstanceRecord,
    Phase,
    Scope,
    TraceContext,
    TraceEvent,
    Traced,
    TypeBuilder,
    WatchSet,
    capture,
    configure,
    enable_audit,
    forget,
    get_context,
    instrument,
    instrument_module,
    intercept,
    intercepted_ops,
    is_intercepted,
    is_registered,
    registered_types,
    restore,
    set_out_stream,
    should_trace,
    traced,
    use_context,
    watch,
    watch_methods,
)


def release(obj: Any) -> None:
    """Tell the active auditor that *obj* is gone."""
    get_context().auditor.release(obj)


@contextlib.contextmanager
def audited(obj: Any) -> Iterator[Any]:
    """Keep *obj* audited for the ``with`` block and release it on exit.

    Example:
        with audited(Connection()) as conn:
            conn.send(b"ping")
    """
    with get_context().auditor.audited(obj) as tracked:
        yield tracked


__all__ = [
    "CallableSink",
    "InterceptedOp",
    "LifetimeAuditor",
    "ListSink",
    "LiveInstanceRecord",
    "LoggingSink",
    "Phase",
    "Scope",
    "Sink",
    "StreamSink",
    "TraceConfig",
    "TraceContext",
    "TraceEvent",
    "Traced",
    "TypeBuilder",
    "WatchSet",
    "as_sink",
    "audited",
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
    "release",
    "restore",
    "set_out_stream",
    "should_trace",
    "traced",
    "use_context",
    "watch",
    "watch_methods",
]
