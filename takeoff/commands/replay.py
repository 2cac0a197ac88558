"""`takeoff replay` — forecast from a recorded tape instead of a live provider."""
from __future__ import annotations

import asyncio

from backend.app.config import load_forecast_settings
from backend.app.core.event_io import write_events_jsonl
from backend.app.core.forecaster import Forecaster
from backend.app.core.replay import ReplayProvider, load_tape
from takeoff.commands import common


def register(subparsers) -> None:
    p = subparsers.add_parser("replay", help="Replay a recorded tape through the streaming pipeline")
    p.add_argument("--tape", type=str, required=True, help="Replay tape JSON")
    common.add_history_args(p)
    common.add_prompt_args(p)
    p.add_argument("--no-strict", action="store_true", help="Skip the request equality check")
    p.add_argument("--output-events", type=str, default=None, help="Where to write the forecast events JSONL")
    p.add_argument("--output-history", type=str, default=None, help="Where to write the closed history JSONL")
    p.set_defaults(func=run)


def run(args) -> int:
    tape = load_tape(args.tape)
    strict = load_forecast_settings().replay_strict and not args.no_strict
    forecaster = Forecaster(
        ReplayProvider(tape, strict=strict),
        model=args.model or tape.request.model,
        system_prompt=common.system_prompt(args),
    )
    history = common.load_history(args)
    result = asyncio.run(forecaster.forecast(history, common.options(args)))
    if args.output_events:
        write_events_jsonl(args.output_events, result.events)
    if args.output_history:
        write_events_jsonl(args.output_history, result.history)
    print(f"Replayed {len(tape.stream)} chunk(s) -> {len(result.events)} event(s)")
    return 0
