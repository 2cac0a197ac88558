"""Argument and file helpers shared by takeoff commands."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from backend.app.config import load_forecast_settings
from backend.app.constants import SYSTEM_PROMPT
from backend.app.core.event_io import read_events_jsonl
from backend.app.core.request_builder import ForecastOptions
from backend.app.models.events import EventModel
from backend.app.scenario import load_seed_scenario


def add_history_args(p, required: bool = False) -> None:
    p.add_argument("--input-history", type=str, required=required, help="History JSONL (one event per line)")
    p.add_argument("--scenario", type=str, default=None, help="Seed scenario name used when no history is given")


def add_prompt_args(p) -> None:
    p.add_argument("--model", type=str, default=None, help="Model id (default: TAKEOFF_MODEL)")
    p.add_argument("--system-prompt", type=str, default=None, help="System prompt text (default: built-in)")
    p.add_argument("--system-prompt-file", type=str, default=None, help="Read the system prompt from a file")
    p.add_argument("--temperature", type=float, default=None)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--max-events", type=int, default=None, help="Budget output for about this many events")


def load_history(args) -> list[EventModel]:
    if getattr(args, "input_history", None):
        return read_events_jsonl(args.input_history, "input-history")
    if getattr(args, "scenario", None):
        return load_seed_scenario(args.scenario)
    return []


def system_prompt(args) -> str:
    if getattr(args, "system_prompt_file", None):
        return Path(args.system_prompt_file).read_text(encoding="utf-8")
    if getattr(args, "system_prompt", None) is not None:
        return args.system_prompt
    return SYSTEM_PROMPT


def model(args) -> str:
    return getattr(args, "model", None) or load_forecast_settings().model


def options(args) -> ForecastOptions | None:
    values = {
        "temperature": getattr(args, "temperature", None),
        "seed": getattr(args, "seed", None),
        "maxEvents": getattr(args, "max_events", None),
    }
    if all(v is None for v in values.values()):
        return None
    return ForecastOptions.model_validate(values)


def write_json(path: str | Path, data: Any) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return p
