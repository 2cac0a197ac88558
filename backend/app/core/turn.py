"""One full game turn: the player's events, then the game master's forecast.

The player's events are bracketed by a player turn window, a game-master
turn is opened at the latest date, the forecaster streams the game master's
events, and the game-master turn is closed at the new latest date. Every
intermediate history is closed with ``sort_and_dedupe``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from backend.app.core.cancellation import CancelToken
from backend.app.core.request_builder import ForecastOptions
from backend.app.core.timeline import assert_chronology, event_date, latest_date, sort_and_dedupe
from backend.app.models.events import EventModel, TurnFinished, TurnStarted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnResult:
    history: list[EventModel] = field(default_factory=list)
    forecast_events: list[EventModel] = field(default_factory=list)
    request: dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False


def earliest_date(events: Sequence[EventModel]) -> str:
    dates = sorted(d for d in (event_date(e) for e in events) if d)
    if not dates:
        raise ValueError("turn: player events must include at least one dated event")
    return dates[0]


def open_player_turn(history: Sequence[EventModel], player_events: Sequence[EventModel]) -> list[EventModel]:
    """History with the player's events bracketed by a player turn window."""
    if not player_events:
        raise ValueError("turn: expected at least one player event")
    start = earliest_date(player_events)
    until = latest_date([*history, *player_events]) or start
    return sort_and_dedupe([
        *history,
        TurnStarted(actor="player", from_=start, until=start),
        *player_events,
        TurnFinished(actor="player", from_=start, until=until),
    ])


async def run_turn(
    history: Sequence[EventModel],
    player_events: Sequence[EventModel],
    forecaster: Any,
    options: ForecastOptions | None = None,
    cancel: CancelToken | None = None,
) -> TurnResult:
    with_player = open_player_turn(history, player_events)
    gm_from = latest_date(with_player) or earliest_date(player_events)
    for_prompt = sort_and_dedupe([*with_player, TurnStarted(actor="game_master", from_=gm_from, until=gm_from)])

    request = forecaster.request_for(for_prompt, options)
    result = await forecaster.forecast(for_prompt, options, cancel)
    assert_chronology(for_prompt, result.events)

    gm_until = latest_date(result.history) or gm_from
    final = sort_and_dedupe([
        *result.history,
        TurnFinished(actor="game_master", from_=gm_from, until=gm_until),
    ])
    logger.info("Turn complete: %d forecast event(s), history now %d event(s)", len(result.events), len(final))
    return TurnResult(history=final, forecast_events=result.events, request=request, cancelled=result.cancelled)
