"""Validation entry points for events and commands.

Every function here is pure: it either returns typed models or raises
:class:`SchemaViolation` naming the offending field. pydantic's
``ValidationError`` never escapes this module.
"""
from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter, ValidationError

from backend.app.core.errors import SchemaViolation, first_error_location
from backend.app.models.commands import Command
from backend.app.models.events import Event, EventModel
from backend.app.models.replay import ReplayTape

_EVENT = TypeAdapter(Event)
_COMMAND = TypeAdapter(Command)


def _violation(exc: ValidationError, what: str, position: int | None = None) -> SchemaViolation:
    path, msg = first_error_location(exc)
    return SchemaViolation(f"Invalid {what}: {msg}", path=path, position=position)


def validate_event(payload: Any) -> EventModel:
    """Validate a single event payload (dict or already-built model)."""
    if isinstance(payload, EventModel):
        return payload
    try:
        return _EVENT.validate_python(payload)
    except ValidationError as exc:
        raise _violation(exc, "event") from exc


def validate_event_array(payload: Any, context: str = "events") -> list[EventModel]:
    """Validate a batch of events; the position of the first bad record is reported."""
    if not isinstance(payload, list):
        raise SchemaViolation(f"Invalid event batch from {context}: expected a JSON array")
    out: list[EventModel] = []
    for index, item in enumerate(payload):
        if isinstance(item, EventModel):
            out.append(item)
            continue
        try:
            out.append(_EVENT.validate_python(item))
        except ValidationError as exc:
            raise _violation(exc, f"event from {context}", position=index) from exc
    return out


def validate_command(payload: Any):
    try:
        return _COMMAND.validate_python(payload)
    except ValidationError as exc:
        raise _violation(exc, "command") from exc


def validate_command_array(payload: Any, context: str = "commands") -> list:
    if not isinstance(payload, list):
        raise SchemaViolation(f"Invalid command batch from {context}: expected a JSON array")
    out = []
    for index, item in enumerate(payload):
        try:
            out.append(_COMMAND.validate_python(item))
        except ValidationError as exc:
            raise _violation(exc, f"command from {context}", position=index) from exc
    return out


def validate_tape(payload: Any, context: str = "tape") -> ReplayTape:
    """Validate a parsed replay tape document."""
    try:
        return ReplayTape.model_validate(payload)
    except ValidationError as exc:
        raise _violation(exc, f"replay {context}") from exc
