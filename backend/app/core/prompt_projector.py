"""Project the event log into the provider's textual context.

Output is two sections::

    # TIMELINE (JSONL)
    <one compact JSON record per event, in history order>
    # CURRENT STATE
    {"latestDate": ..., "currentTurn": ...}

Raw ``news-opened`` telemetry is coalesced into a single
``{"type": "news-opened", "ids": [...]}`` line per player-turn window and
``news-closed`` is dropped. The same history always yields the same bytes;
replay tapes compare this text verbatim.
"""
from __future__ import annotations

import json
from typing import Any, Sequence

from backend.app.constants import CURRENT_STATE_HEADER, FORECAST_CUTOFF_NOTE, TIMELINE_HEADER
from backend.app.core.normalize import with_canonical_id
from backend.app.core.timeline import latest_date
from backend.app.models.events import (
    NEWS_TYPES,
    EventModel,
    NewsClosed,
    NewsOpened,
    ScenarioHeadCompleted,
    TurnFinished,
    TurnStarted,
)


def compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _turn_window(event: TurnStarted) -> dict[str, str]:
    return {"from": event.from_, "until": event.until, "actor": event.actor}


def build_timeline(history: Sequence[EventModel]) -> tuple[list[str], dict[str, Any]]:
    """Return (journal lines, current-state block) for ``history``."""
    lines: list[str] = []
    opened: list[str] = []
    cutoff_inserted = False
    current_turn: dict[str, str] | None = None

    def flush_opened() -> None:
        if opened:
            lines.append(compact_json({"type": "news-opened", "ids": list(opened)}))
            opened.clear()

    for event in history:
        if isinstance(event, NewsOpened):
            if event.target_id not in opened:
                opened.append(event.target_id)
            continue
        if isinstance(event, NewsClosed):
            continue

        if isinstance(event, TurnStarted):
            if event.actor == "player":
                flush_opened()
            current_turn = _turn_window(event)
        elif isinstance(event, TurnFinished):
            if event.actor == "player":
                flush_opened()
            if current_turn is not None and current_turn["actor"] == event.actor:
                current_turn = None

        if isinstance(event, NEWS_TYPES):
            lines.append(compact_json(with_canonical_id(event).to_record()))
        else:
            lines.append(compact_json(event.to_record()))

        if isinstance(event, ScenarioHeadCompleted) and not cutoff_inserted:
            lines.append(compact_json({"type": "forecast-cutoff", "date": event.date, "note": FORECAST_CUTOFF_NOTE}))
            cutoff_inserted = True

    flush_opened()
    dynamic = {"latestDate": latest_date(history), "currentTurn": current_turn}
    return lines, dynamic


def project(history: Sequence[EventModel]) -> str:
    lines, dynamic = build_timeline(history)
    return "\n".join([
        TIMELINE_HEADER,
        *lines,
        CURRENT_STATE_HEADER,
        json.dumps(dynamic, indent=2, ensure_ascii=False),
    ])
