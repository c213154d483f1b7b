"""Destinations for trace and staleness lines."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Optional, Protocol, TextIO, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = [
    "CallableSink",
    "ListSink",
    "LoggingSink",
    "Sink",
    "StreamSink",
    "as_sink",
]


@runtime_checkable
class Sink(Protocol):
    def write_line(self, line: str) -> None: ...


class StreamSink:
    """Write each line to a text stream (``sys.stdout`` when unset)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def write_line(self, line: str) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        stream.write(line + "\n")
        stream.flush()

    def __repr__(self) -> str:
        return f"StreamSink({self.stream!r})"


class ListSink:
    """Collect lines in memory. Handy for snapshot tests."""

    def __init__(self):
        self.lines: list[str] = []

    def write_line(self, line: str) -> None:
        self.lines.append(line)

    def clear(self) -> None:
        self.lines.clear()

    def __len__(self) -> int:
        return len(self.lines)

    def __repr__(self) -> str:
        return f"ListSink({len(self.lines)} lines)"


class LoggingSink:
    def __init__(self, target: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = target or logging.getLogger("defunc.trace")
        self.level = level

    def write_line(self, line: str) -> None:
        self.logger.log(self.level, "%s", line)


class CallableSink:
    def __init__(self, fn: Callable[[str], Any]):
        if not callable(fn):
            raise TypeError("CallableSink expects a callable")
        self.fn = fn

    def write_line(self, line: str) -> None:
        self.fn(line)


def as_sink(obj: Any) -> Sink:
    """Coerce *obj* into a :class:`Sink`.

    Accepts an object with ``write_line``, a file-like object with ``write``
    or a callable taking one string (``print``, ``list.append``...).
    """
    if isinstance(obj, Sink):
        return obj
    if callable(getattr(obj, "write", None)):
        return StreamSink(obj)
    if callable(obj):
        return CallableSink(obj)
    raise TypeError(
        f"sink must define write_line(), write() or be callable, got {type(obj).__name__}"
    )
