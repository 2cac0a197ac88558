"""Forecaster: request building, provider streaming and folding in one place.

Providers only need ``stream(request, cancel) -> AsyncIterator[str]``; the
live Gemini client, a replay tape and a recording tee all fit that shape.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, Sequence

from backend.app.constants import SYSTEM_PROMPT
from backend.app.core.cancellation import CancelToken, is_cancelled
from backend.app.core.errors import ForecastEngineError, log_error_with_context
from backend.app.core.request_builder import ForecastOptions, build_request
from backend.app.core.streaming_pipeline import ChunkResult, ingest_stream
from backend.app.core.timeline import sort_and_dedupe
from backend.app.models.events import EventModel
from shared.config import DEFAULT_MODEL, MAX_PENDING_CHARS

logger = logging.getLogger(__name__)


class Provider(Protocol):
    name: str

    def stream(self, request: dict[str, Any], cancel: CancelToken | None = None) -> AsyncIterator[str]:
        ...


@dataclass(frozen=True)
class ForecastResult:
    """New events in arrival order plus the closed (sorted, deduped) history."""
    events: list[EventModel] = field(default_factory=list)
    history: list[EventModel] = field(default_factory=list)
    cancelled: bool = False


class Forecaster:
    def __init__(
        self,
        provider: Provider,
        model: str = DEFAULT_MODEL,
        system_prompt: str = SYSTEM_PROMPT,
        max_pending_chars: int = MAX_PENDING_CHARS,
        session_id: str | None = None,
    ):
        self.provider = provider
        self.model = model
        self.system_prompt = system_prompt
        self.max_pending_chars = max_pending_chars
        self.session_id = session_id

    def request_for(self, history: Sequence[EventModel], options: ForecastOptions | None = None) -> dict[str, Any]:
        return build_request(self.model, history, self.system_prompt, options)

    async def stream_chunks(
        self,
        history: Sequence[EventModel],
        options: ForecastOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> AsyncIterator[ChunkResult]:
        """Yield one result per parsed chunk as the provider streams."""
        request = self.request_for(history, options)
        provider_name = getattr(self.provider, "name", type(self.provider).__name__)
        logger.info("Forecasting with %s (model=%s, %d prior event(s))", provider_name, self.model, len(history))
        fragments = self.provider.stream(request, cancel)
        async for result in ingest_stream(fragments, history, cancel, self.max_pending_chars):
            yield result

    async def forecast(
        self,
        history: Sequence[EventModel],
        options: ForecastOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> ForecastResult:
        events: list[EventModel] = []
        current = list(history)
        try:
            async for result in self.stream_chunks(history, options, cancel):
                events.extend(result.events)
                current = result.next_history
        except ForecastEngineError as exc:
            log_error_with_context(
                exc,
                stage="forecast",
                session_id=self.session_id,
                extra_context={"provider": getattr(self.provider, "name", None), "events_folded": len(events)},
            )
            raise
        logger.info("Forecast produced %d event(s)", len(events))
        return ForecastResult(events=events, history=sort_and_dedupe(current), cancelled=is_cancelled(cancel))


class StaticProvider:
    """Provider that yields a fixed list of fragments; used for offline runs."""

    name = "static"

    def __init__(self, fragments: Sequence[str]):
        self.fragments = list(fragments)
        self.requests: list[dict[str, Any]] = []

    def stream(self, request: dict[str, Any], cancel: CancelToken | None = None) -> AsyncIterator[str]:
        self.requests.append(request)
        return self._emit(cancel)

    async def _emit(self, cancel: CancelToken | None) -> AsyncIterator[str]:
        for fragment in self.fragments:
            if is_cancelled(cancel):
                return
            yield fragment
