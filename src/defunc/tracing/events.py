from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class Phase(str, enum.Enum):
    ENTER = "enter"
    EXIT = "exit"
    RAISE = "raise"


def format_arguments(args: tuple, kwargs: dict[str, Any]) -> str:
    parts = [repr(a) for a in args]
    parts.extend(f"{k}={v!r}" for k, v in kwargs.items())
    return "[" + ", ".join(parts) + "]"


@dataclass
class TraceEvent:
    """One enter, exit or raise record of a traced call.

    ``depth`` is already expressed in spaces: it advances by the configured
    indent step per nesting level.
    """

    depth: int
    phase: Phase
    operation: str
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[BaseException] = None
    object_delta: int = 0

    def render(self) -> str:
        indent = " " * self.depth
        if self.phase is Phase.ENTER:
            return f"{indent}enter {self.operation}: {format_arguments(self.args, self.kwargs)}"
        shown = self.error if self.phase is Phase.RAISE else self.result
        return (
            f"{indent}{self.phase.value} {self.operation}: {shown!r}"
            f" (object count has changed by {self.object_delta:+d})"
        )

    def __str__(self) -> str:
        return self.render()
