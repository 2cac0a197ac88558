"""Per-game sessions. Each session owns its own history value; nothing is global."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Iterable, Sequence

from backend.app.core.cancellation import CancelToken
from backend.app.core.request_builder import ForecastOptions
from backend.app.core.timeline import AggregatedState, aggregate, project_visible, sort_and_dedupe
from backend.app.core.turn import TurnResult, run_turn
from backend.app.models.event_utils import validate_event_array
from backend.app.models.events import EventModel

logger = logging.getLogger(__name__)


class ForecastSession:
    """One game: a history, the forecaster that extends it, and its diagnostics.

    Turns are serialized per session; separate sessions never share state.
    """

    def __init__(self, session_id: str, forecaster: Any, history: Iterable[EventModel] = ()):
        self.session_id = session_id
        self.forecaster = forecaster
        self._history: list[EventModel] = sort_and_dedupe(history)
        self.warnings: list[str] = []
        self._turn_lock = asyncio.Lock()

    @property
    def history(self) -> list[EventModel]:
        return list(self._history)

    def append(self, events: Sequence[EventModel | dict]) -> list[EventModel]:
        validated = validate_event_array(list(events), context=f"session {self.session_id}")
        self._history = sort_and_dedupe([*self._history, *validated])
        return self.history

    def visible(self, include_hidden: bool = False) -> list[EventModel]:
        return project_visible(self._history, include_hidden=include_hidden, warnings=self)

    def state(self) -> AggregatedState:
        return aggregate(self._history)

    async def play_turn(
        self,
        player_events: Sequence[EventModel],
        options: ForecastOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> TurnResult:
        async with self._turn_lock:
            result = await run_turn(self._history, player_events, self.forecaster, options, cancel)
            self._history = list(result.history)
            return result


class SessionRegistry:
    """Explicit map of session id -> session, passed to whoever serves games."""

    def __init__(self, forecaster_factory: Callable[[str], Any]):
        self._forecaster_factory = forecaster_factory
        self._sessions: dict[str, ForecastSession] = {}

    def create(self, history: Iterable[EventModel] = (), session_id: str | None = None) -> ForecastSession:
        sid = session_id or uuid.uuid4().hex
        if sid in self._sessions:
            raise ValueError(f"Session already exists: {sid}")
        session = ForecastSession(sid, self._forecaster_factory(sid), history)
        self._sessions[sid] = session
        logger.info("Created session %s (%d event(s))", sid, len(session.history))
        return session

    def get(self, session_id: str) -> ForecastSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session: {session_id}") from None

    def close(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Closed session %s", session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
