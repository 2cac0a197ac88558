"""Build the provider request for a history: model, projected contents, config.

The request is plain JSON data so it can be stored on a replay tape and
compared field-for-field on replay.
"""
from __future__ import annotations

import copy
from typing import Any, Optional, Sequence

from pydantic import Field

from backend.app.constants import (
    DATE_PATTERN,
    ICON_SET,
    MAX_OUTPUT_TOKENS_FLOOR,
    MAX_OUTPUT_TOKENS_PER_EVENT,
    RESPONSE_MIME_TYPE,
)
from backend.app.core.prompt_projector import project
from backend.app.models.events import EventModel, RecordModel


class ForecastOptions(RecordModel):
    """Caller-facing knobs; ``maxEvents`` becomes an output-token budget."""
    temperature: Optional[float] = Field(default=None, ge=0)
    seed: Optional[int] = None
    max_events: Optional[int] = Field(default=None, alias="maxEvents", ge=1)


def max_output_tokens(max_events: int) -> int:
    return max(MAX_OUTPUT_TOKENS_FLOOR, max_events * MAX_OUTPUT_TOKENS_PER_EVENT)


def generation_options(options: ForecastOptions | None) -> dict[str, Any]:
    if options is None:
        return {}
    out: dict[str, Any] = {}
    if options.temperature is not None:
        out["temperature"] = options.temperature
    if options.seed is not None:
        out["seed"] = options.seed
    if options.max_events is not None:
        out["maxOutputTokens"] = max_output_tokens(options.max_events)
    return out


_DATE = {"type": "STRING", "pattern": DATE_PATTERN}
_ICON = {"type": "STRING", "enum": list(ICON_SET)}


def _publish_schema(tag: str) -> dict[str, Any]:
    return {
        "type": "OBJECT",
        "properties": {
            "type": {"type": "STRING", "enum": [tag]},
            "id": {"type": "STRING"},
            "date": _DATE,
            "icon": _ICON,
            "title": {"type": "STRING"},
            "description": {"type": "STRING"},
        },
        "required": ["type", "date", "icon", "title", "description"],
    }


_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "minItems": "1",
    "items": {
        "anyOf": [
            _publish_schema("publish-news"),
            _publish_schema("publish-hidden-news"),
            {
                "type": "OBJECT",
                "properties": {
                    "type": {"type": "STRING", "enum": ["patch-news"]},
                    "targetId": {"type": "STRING"},
                    "date": _DATE,
                    "patch": {
                        "type": "OBJECT",
                        "minProperties": "1",
                        "properties": {
                            "date": _DATE,
                            "icon": _ICON,
                            "title": {"type": "STRING"},
                            "description": {"type": "STRING"},
                        },
                    },
                },
                "required": ["type", "targetId", "date", "patch"],
            },
            {
                "type": "OBJECT",
                "properties": {
                    "type": {"type": "STRING", "enum": ["game-over"]},
                    "date": _DATE,
                    "summary": {"type": "STRING"},
                },
                "required": ["type", "date", "summary"],
            },
        ],
    },
}


def response_schema() -> dict[str, Any]:
    return copy.deepcopy(_RESPONSE_SCHEMA)


def build_request(
    model: str,
    history: Sequence[EventModel],
    system_prompt: str,
    options: ForecastOptions | None = None,
) -> dict[str, Any]:
    """Request that a provider (live, recording, or replay) receives for ``history``."""
    config: dict[str, Any] = {
        "systemInstruction": system_prompt,
        "responseMimeType": RESPONSE_MIME_TYPE,
        "responseSchema": response_schema(),
    }
    config.update(generation_options(options))
    return {"model": model, "contents": project(history), "config": config}
