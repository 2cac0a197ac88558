"""`takeoff call` — stream a prepared request from Gemini and save the raw response."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path

from backend.app.config import load_forecast_settings
from backend.app.core.replay import RecordingProvider
from backend.llm_client import GeminiProvider
from takeoff.commands.common import write_json


def register(subparsers) -> None:
    p = subparsers.add_parser("call", help="Send a prepared request to Gemini and save the streamed text")
    p.add_argument("--input-prompt", type=str, required=True, help="Request JSON written by `takeoff prepare`")
    p.add_argument("--output-response", type=str, required=True, help="Where to write the response JSON")
    p.add_argument("--api-key", type=str, default=None, help="Gemini API key (default: GEMINI_API_KEY)")
    p.add_argument("--record", type=str, default=None, help="Also record the session to this tape path")
    p.set_defaults(func=run)


async def _collect(provider, request: dict) -> list[str]:
    return [text async for text in provider.stream(request)]


def run(args) -> int:
    request = json.loads(Path(args.input_prompt).read_text(encoding="utf-8"))
    settings = load_forecast_settings()
    provider = GeminiProvider(args.api_key or settings.api_key, base_url=settings.base_url, timeout=settings.timeout)
    if args.record:
        provider = RecordingProvider(provider, args.record)
    chunks = asyncio.run(_collect(provider, request))
    write_json(args.output_response, {
        "chunks": [{"text": text} for text in chunks],
        "response": {"text": "".join(chunks)},
    })
    print(f"Received {len(chunks)} chunk(s) -> {args.output_response}")
    return 0
