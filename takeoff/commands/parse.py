"""`takeoff parse` — turn a saved model response into validated JSONL events."""
from __future__ import annotations

from pathlib import Path

from backend.app.core.event_io import parse_model_text, write_events_jsonl


def register(subparsers) -> None:
    p = subparsers.add_parser("parse", help="Parse a raw model response into events")
    p.add_argument("--input-json", type=str, required=True, help="Response file (commands, JSONL, or response wrapper)")
    p.add_argument("--output-events", type=str, required=True, help="Where to write events JSONL")
    p.set_defaults(func=run)


def run(args) -> int:
    raw = Path(args.input_json).read_text(encoding="utf-8")
    events = parse_model_text(raw)
    write_events_jsonl(args.output_events, events)
    print(f"Parsed {len(events)} event(s) -> {args.output_events}")
    return 0
