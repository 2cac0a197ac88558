"""`takeoff turn` — one player turn plus the game master's forecast.

The game master is a live Gemini call by default, a tape with ``--replay``,
or a single deterministic event with ``--mock``.
"""
from __future__ import annotations

import asyncio
import json

from backend.app.config import load_forecast_settings
from backend.app.core.event_io import read_events_jsonl, write_events_jsonl
from backend.app.core.forecaster import Forecaster, StaticProvider
from backend.app.core.replay import RecordingProvider, ReplayProvider, load_tape
from backend.app.core.timeline import aggregate, latest_date
from backend.app.core.turn import open_player_turn, run_turn
from backend.llm_client import GeminiProvider
from takeoff.commands import common


def register(subparsers) -> None:
    p = subparsers.add_parser("turn", help="Run a full player + game-master turn")
    common.add_history_args(p)
    common.add_prompt_args(p)
    p.add_argument("--new-events", type=str, required=True, help="Player events JSONL")
    p.add_argument("--output-history", type=str, required=True, help="Where to write the new history JSONL")
    p.add_argument("--output-state", type=str, default=None, help="Where to write the aggregated state JSON")
    p.add_argument("--output-prompt", type=str, default=None, help="Where to write the request that was sent")
    p.add_argument("--output-events", type=str, default=None, help="Where to write the forecast events JSONL")
    source = p.add_mutually_exclusive_group()
    source.add_argument("--replay", type=str, default=None, help="Use this tape instead of a live call")
    source.add_argument("--mock", action="store_true", help="Emit one deterministic forecast event")
    source.add_argument("--record", type=str, default=None, help="Record the live call to this tape path")
    p.set_defaults(func=run)


def _mock_fragments(gm_date: str) -> list[str]:
    commands = [{
        "type": "publish-news",
        "date": gm_date,
        "icon": "Landmark",
        "title": "Mock forecast",
        "description": "Deterministic mock forecast event.",
    }]
    return [json.dumps(commands)]


def _provider(args, history, player_events):
    if args.replay:
        return ReplayProvider(load_tape(args.replay), strict=load_forecast_settings().replay_strict)
    if args.mock:
        gm_date = latest_date(open_player_turn(history, player_events))
        return StaticProvider(_mock_fragments(gm_date))
    provider = GeminiProvider.from_settings(load_forecast_settings())
    if args.record:
        provider = RecordingProvider(provider, args.record)
    return provider


def run(args) -> int:
    history = common.load_history(args)
    player_events = read_events_jsonl(args.new_events, "new-events")
    provider = _provider(args, history, player_events)
    model = args.model or (provider.tape.request.model if isinstance(provider, ReplayProvider) else common.model(args))
    forecaster = Forecaster(
        provider,
        model=model,
        system_prompt=common.system_prompt(args),
    )
    result = asyncio.run(run_turn(history, player_events, forecaster, common.options(args)))

    write_events_jsonl(args.output_history, result.history)
    if args.output_state:
        common.write_json(args.output_state, aggregate(result.history).to_dict())
    if args.output_prompt:
        common.write_json(args.output_prompt, result.request)
    if args.output_events:
        write_events_jsonl(args.output_events, result.forecast_events)
    print(f"Turn complete: {len(result.forecast_events)} forecast event(s), {len(result.history)} event(s) in history")
    return 0
