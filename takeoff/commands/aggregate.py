"""`takeoff aggregate` — derive state from history (+optional new events)."""
from __future__ import annotations

from backend.app.core.event_io import read_events_jsonl, write_events_jsonl
from backend.app.core.timeline import aggregate
from takeoff.commands.common import add_history_args, load_history, write_json


def register(subparsers) -> None:
    p = subparsers.add_parser("aggregate", help="Sort, dedupe and summarize a history")
    add_history_args(p)
    p.add_argument("--new-events", type=str, default=None, help="Extra events JSONL to fold in")
    p.add_argument("--output-state", type=str, required=True, help="Where to write the state JSON")
    p.add_argument("--output-history", type=str, default=None, help="Where to write the closed history JSONL")
    p.set_defaults(func=run)


def run(args) -> int:
    history = load_history(args)
    if args.new_events:
        history = [*history, *read_events_jsonl(args.new_events, "new-events")]
    state = aggregate(history)
    write_json(args.output_state, state.to_dict())
    if args.output_history:
        write_events_jsonl(args.output_history, state.events)
    print(f"Aggregated {state.event_count} event(s); latest date {state.latest_date or '-'}")
    return 0
