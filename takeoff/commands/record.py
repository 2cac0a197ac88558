"""`takeoff record` — forecast live from Gemini and save the session as a tape."""
from __future__ import annotations

import asyncio

from backend.app.config import load_forecast_settings
from backend.app.core.event_io import write_events_jsonl
from backend.app.core.forecaster import Forecaster
from backend.app.core.replay import RecordingProvider
from backend.llm_client import GeminiProvider
from takeoff.commands import common


def register(subparsers) -> None:
    p = subparsers.add_parser("record", help="Forecast live and record the provider stream to a tape")
    p.add_argument("--tape", type=str, required=True, help="Where to write the tape JSON")
    common.add_history_args(p)
    common.add_prompt_args(p)
    p.add_argument("--label", type=str, default=None)
    p.add_argument("--comment", type=str, default=None)
    p.add_argument("--output-events", type=str, default=None, help="Where to write the forecast events JSONL")
    p.set_defaults(func=run)


def run(args) -> int:
    settings = load_forecast_settings()
    provider = RecordingProvider(
        GeminiProvider.from_settings(settings),
        args.tape,
        label=args.label,
        comment=args.comment,
    )
    forecaster = Forecaster(
        provider,
        model=args.model or settings.model,
        system_prompt=common.system_prompt(args),
        max_pending_chars=settings.max_pending_chars,
    )
    result = asyncio.run(forecaster.forecast(common.load_history(args), common.options(args)))
    if args.output_events:
        write_events_jsonl(args.output_events, result.events)
    print(f"Recorded {len(result.events)} event(s) -> {args.tape}")
    return 0
