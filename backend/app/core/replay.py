"""Record and replay provider streams as JSON tapes.

A tape holds the exact outbound request plus every text fragment the
provider produced, each with its delay since the previous fragment (the
first measured from dispatch). ``ReplayProvider`` plays a tape back through
the same streaming pipeline a live session uses; ``RecordingProvider`` wraps
a live provider and writes the tape once the stream completes.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from backend.app.config import load_forecast_settings
from backend.app.core.cancellation import CancelToken, is_cancelled
from backend.app.core.errors import ReplayMismatch, SchemaViolation
from backend.app.core.streaming_pipeline import close_stream
from backend.app.models.event_utils import validate_tape
from backend.app.models.replay import ReplayChunk, ReplayMeta, ReplayRequest, ReplayTape

logger = logging.getLogger(__name__)


def load_tape(path: str | Path) -> ReplayTape:
    """Read and validate a tape file; malformed files fail here, not mid-replay."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaViolation(f"Replay tape {p} is not valid JSON: {exc.msg}", position=exc.lineno) from exc
    return validate_tape(payload, context=str(p))


def dump_tape(tape: ReplayTape) -> str:
    return json.dumps(tape.to_record(), indent=2, ensure_ascii=False) + "\n"


def save_tape(path: str | Path, tape: ReplayTape) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dump_tape(tape), encoding="utf-8")
    logger.info("Wrote replay tape %s (%d chunk(s))", p, len(tape.stream))
    return p


def _plain(value: Any) -> Any:
    """JSON-normalize a value so it compares the way it would after a trip through the file."""
    return json.loads(json.dumps(value))


def _first_difference(expected: Any, actual: Any, path: str) -> Optional[str]:
    if isinstance(expected, dict) and isinstance(actual, dict):
        for key in sorted(set(expected) | set(actual)):
            sub = f"{path}.{key}" if path else key
            if key not in expected or key not in actual:
                return sub
            found = _first_difference(expected[key], actual[key], sub)
            if found:
                return found
        return None
    return None if expected == actual else path or "<root>"


def assert_request_matches(tape: ReplayTape, request: dict[str, Any]) -> None:
    """Raise :class:`ReplayMismatch` naming the first field where ``request`` differs from the tape."""
    expected = _plain(tape.request.model_dump(mode="json"))
    actual = _plain({key: request.get(key) for key in ("model", "contents", "config")})
    field = _first_difference(expected, actual, "")
    if field is None:
        return
    exp, act = expected, actual
    for part in field.split("."):
        exp = exp.get(part) if isinstance(exp, dict) else None
        act = act.get(part) if isinstance(act, dict) else None
    logger.error("Replay request mismatch on '%s'", field)
    raise ReplayMismatch(field, expected=exp, actual=act)


class ReplayProvider:
    """Provider that serves a recorded tape, honouring each chunk's delay."""

    name = "replay"

    def __init__(self, tape: ReplayTape, strict: bool = True):
        self.tape = tape
        self.strict = strict

    @classmethod
    def from_path(cls, path: str | Path, strict: bool | None = None) -> ReplayProvider:
        return cls(load_tape(path), strict=load_forecast_settings().replay_strict if strict is None else strict)

    def stream(self, request: dict[str, Any], cancel: CancelToken | None = None) -> AsyncIterator[str]:
        # Checked eagerly so a stale tape fails before any chunk is produced.
        if self.strict:
            assert_request_matches(self.tape, request)
        return self._play(cancel)

    async def _play(self, cancel: CancelToken | None) -> AsyncIterator[str]:
        for chunk in self.tape.stream:
            if chunk.delay_ns > 0:
                seconds = chunk.delay_ns / 1_000_000_000
                if cancel is None:
                    await asyncio.sleep(seconds)
                elif not await cancel.sleep(seconds):
                    logger.info("Replay cancelled before chunk delivery")
                    return
            if is_cancelled(cancel):
                return
            yield chunk.text


class RecordingProvider:
    """Transparent tee over a live provider that persists what it saw as a tape.

    Callers observe the base provider's fragments unchanged. The tape is
    written only when the base stream completes; an abandoned or cancelled
    stream leaves no tape behind.
    """

    name = "recording"

    def __init__(
        self,
        base: Any,
        tape_path: str | Path,
        label: str | None = None,
        comment: str | None = None,
        sdk: str | None = None,
    ):
        self.base = base
        self.tape_path = Path(tape_path)
        self.label = label
        self.comment = comment
        self.sdk = sdk if sdk is not None else getattr(base, "sdk", None)
        self.last_tape: ReplayTape | None = None

    def stream(self, request: dict[str, Any], cancel: CancelToken | None = None) -> AsyncIterator[str]:
        dispatched = time.perf_counter_ns()
        recorded_request = ReplayRequest.model_validate(_plain(
            {"model": request.get("model"), "contents": request.get("contents"), "config": request.get("config") or {}}
        ))
        source = self.base.stream(request, cancel)
        return self._tee(recorded_request, source, dispatched, cancel)

    async def _tee(
        self,
        request: ReplayRequest,
        source: AsyncIterator[str],
        dispatched: int,
        cancel: CancelToken | None,
    ) -> AsyncIterator[str]:
        chunks: list[ReplayChunk] = []
        last = dispatched
        try:
            async for text in source:
                now = time.perf_counter_ns()
                chunks.append(ReplayChunk(delay_ns=max(0, now - last), text=text))
                last = now
                yield text
        finally:
            await close_stream(source)

        if is_cancelled(cancel):
            logger.warning("Recording cancelled; tape %s not written", self.tape_path)
            return
        meta = ReplayMeta(
            model=request.model,
            recorded_at=datetime.now(timezone.utc).isoformat(),
            label=self.label,
            sdk=self.sdk,
            comment=self.comment,
        )
        self.last_tape = ReplayTape(meta=meta, request=request, stream=chunks)
        save_tape(self.tape_path, self.last_tape)
