"""JSON-Lines event logs and raw model responses on disk."""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable

from backend.app.core.errors import SchemaViolation
from backend.app.core.normalize import normalize_all
from backend.app.core.prompt_projector import compact_json
from backend.app.core.timeline import sort_and_dedupe
from backend.app.models.event_utils import validate_command_array, validate_event
from backend.app.models.events import EventModel

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json|jsonl)?\s*\n(.*)\n```$", re.DOTALL)


def read_events_jsonl(path: str | Path, label: str = "events") -> list[EventModel]:
    """Read one event per line; errors name the label and the 1-based line number."""
    p = Path(path)
    events: list[EventModel] = []
    for lineno, line in enumerate(p.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            raise SchemaViolation(f"{label}: invalid JSON on line {lineno}: {exc.msg}", position=lineno) from exc
        try:
            events.append(validate_event(payload))
        except SchemaViolation as exc:
            raise SchemaViolation(f"{label}: {exc.message}", path=exc.path, position=lineno) from exc
    logger.debug("Read %d event(s) from %s", len(events), p)
    return sort_and_dedupe(events)


def write_events_jsonl(path: str | Path, events: Iterable[EventModel]) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    lines = [compact_json(e.to_record()) for e in events]
    p.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    return p


def _text_from(value: Any) -> str | None:
    """Pull model text out of a saved response wrapper.

    Accepts ``{"text"}``, ``{"chunks": [{"text"}]}``, ``{"response": ...}``
    and Gemini's ``candidates[].content.parts[].text``.
    """
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return None
    if isinstance(value.get("text"), str):
        return value["text"]
    chunks = value.get("chunks")
    if isinstance(chunks, list):
        joined = "".join(t for t in (_text_from(c) for c in chunks) if t)
        if joined:
            return joined
    if value.get("response") is not None:
        found = _text_from(value["response"])
        if found:
            return found
    candidates = value.get("candidates")
    if isinstance(candidates, list):
        parts = []
        for candidate in candidates:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            for part in (content or {}).get("parts") or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    parts.append(part["text"])
        if parts:
            return "".join(parts)
    return None


def _strip_fence(text: str) -> str:
    match = _FENCE.match(text.strip())
    return match.group(1) if match else text


def _commands_from_text(text: str) -> list[Any]:
    body = _strip_fence(text).strip()
    if not body:
        raise SchemaViolation("model text was empty after trimming")
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as json_err:
        records = []
        for lineno, line in enumerate(body.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise SchemaViolation(
                    f"model text is not valid JSON ({json_err.msg}) or JSONL ({exc.msg})",
                    position=lineno,
                ) from exc
        return records
    return parsed if isinstance(parsed, list) else [parsed]


def parse_model_text(raw: str) -> list[EventModel]:
    """Turn a saved model response (bare commands, JSONL, or a wrapper) into events."""
    trimmed = (raw or "").strip()
    if not trimmed:
        raise SchemaViolation("response is empty")
    try:
        parsed: Any = json.loads(trimmed)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, list):
        records = parsed
    elif isinstance(parsed, dict) and "type" in parsed:
        records = [parsed]
    else:
        text = _text_from(parsed) if parsed is not None else trimmed
        if not text or not text.strip():
            raise SchemaViolation("no model text found (expected text, response.text or chunks[].text)")
        records = _commands_from_text(text)

    commands = validate_command_array(records, context="model response")
    return normalize_all(commands)
