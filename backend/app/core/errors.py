"""Engine error taxonomy and structured error logging."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

logger = logging.getLogger(__name__)


class ForecastEngineError(Exception):
    """Base class for errors raised by the forecasting core."""


class SchemaViolation(ForecastEngineError):
    """Payload failed structural validation.

    ``path`` is the dotted location of the offending field (``"0.patch"``);
    ``position`` is the record index or 1-based line number when the payload
    came from a stream chunk or a JSONL file.
    """

    def __init__(self, message: str, path: str = "", position: int | None = None):
        self.message = message
        self.path = path
        self.position = position
        where = []
        if position is not None:
            where.append(f"record {position}")
        if path:
            where.append(f"at {path}")
        suffix = f" ({', '.join(where)})" if where else ""
        super().__init__(f"{message}{suffix}")


class ReplayMismatch(ForecastEngineError):
    """Rebuilt request differs from the tape's recorded request (strict replay)."""

    def __init__(self, field: str, expected: Any = None, actual: Any = None):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(f"Replay request mismatch on '{field}'")


class StreamFailure(ForecastEngineError):
    """Provider stream errored or ended on text that never parsed.

    ``events`` holds whatever was validated and folded before the failure;
    those stay valid.
    """

    def __init__(self, message: str, events: Sequence[Any] = ()):
        self.events = list(events)
        super().__init__(message)


class ChronologyViolation(ForecastEngineError):
    """Provider emitted an event dated before the latest date in history."""


@dataclass(frozen=True)
class OrderingInconsistency:
    """Non-fatal: a patch targets an id with no published item."""
    target_id: str
    date: str

    def describe(self) -> str:
        return f"news-patched on {self.date} targets unknown id '{self.target_id}'"


def first_error_location(exc: Any) -> tuple[str, str]:
    """Return (dotted_path, message) for the first error of a pydantic ValidationError."""
    errors = exc.errors() if hasattr(exc, "errors") else []
    if not errors:
        return "", str(exc)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return loc, first.get("msg", "invalid value")


def log_error_with_context(
    error: Exception,
    stage: str,
    session_id: str | None = None,
    extra_context: dict[str, Any] | None = None,
) -> None:
    """
    Log an error with context: pipeline stage, session id and stack trace.

    Args:
        error: The exception that occurred
        stage: Pipeline stage (e.g. 'stream', 'replay', 'turn')
        session_id: Game session the error belongs to
        extra_context: Additional context dict to include in log
    """
    extra: dict[str, Any] = dict(extra_context or {})
    extra["stage"] = stage
    if session_id:
        extra["session_id"] = session_id
    context_str = f"session_id={session_id}" if session_id else "no session"
    logger.error(
        "[%s] Error: %s: %s (%s)",
        stage,
        type(error).__name__,
        error,
        context_str,
        exc_info=True,
        extra=extra,
    )
