from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "DEFUNC_"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class TraceConfig:
    """Process-wide tracing knobs.

    Attributes
    ----------
    trace_all : bool
        Trace every declared operation of a registered type when its watch
        set for that scope is empty.
    stale_threshold : float
        Age in seconds after which a collected instance is reported.
    indent_step : int
        Spaces added to the indentation per nesting level.
    thread_local_depth : bool
        Keep one depth counter per thread instead of a single shared one.
    qualified_names : bool
        Render operations as ``Type.name`` / ``Type#name``.
    """

    trace_all: bool = False
    stale_threshold: float = 120.0
    indent_step: int = 2
    thread_local_depth: bool = True
    qualified_names: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.indent_step, int) or self.indent_step <= 0:
            raise ValueError("indent_step must be a positive int")
        if self.stale_threshold < 0:
            raise ValueError("stale_threshold must be non-negative")

    def updated(self, **changes: Any) -> "TraceConfig":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise TypeError(f"unknown config field(s): {', '.join(unknown)}")
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TraceConfig":
        """Build a config from ``DEFUNC_*`` environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            raw = env.get(key)
            if raw is None:
                continue
            values[f.name] = _parse(key, raw, f.default)
        if values:
            logger.info("TraceConfig.from_env: %s", values)
        return cls(**values)


def _parse(key: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"{key} must be a boolean, got {raw!r}")
    try:
        return type(default)(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be {type(default).__name__}, got {raw!r}") from exc
