"""Timeline utilities over the append-only event log.

History is a plain ordered list of frozen event models, passed and returned by
value. Nothing here mutates its input:

- ``sort_and_dedupe`` is the closing step applied before any consumer sees a history.
- ``project_visible`` is a pure fold of publishes and later patches by id.
- ``next_date_after`` is the single source of "what day is it next".
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date as _date, datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from backend.app.core.errors import ChronologyViolation, OrderingInconsistency
from backend.app.core.normalize import news_id, with_canonical_id
from backend.app.core.warnings import report_inconsistency
from backend.app.models.events import (
    NEWS_TYPES,
    TELEMETRY_TYPES,
    EventModel,
    GameOver,
    HiddenNewsPublished,
    NewsPatched,
    ScenarioHeadCompleted,
    TurnFinished,
    TurnStarted,
)

logger = logging.getLogger(__name__)


def event_date(event: EventModel) -> str | None:
    """Game date of an event; telemetry carries none."""
    if isinstance(event, TurnStarted):
        return event.from_
    if isinstance(event, TurnFinished):
        return event.until
    if isinstance(event, TELEMETRY_TYPES):
        return None
    return getattr(event, "date", None)


def latest_date(events: Iterable[EventModel]) -> str | None:
    """Max date across all dated events, or None for an undated history."""
    dates = [d for d in (event_date(e) for e in events) if d]
    return max(dates) if dates else None


def today_utc() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def next_day(day: str) -> str:
    return (_date.fromisoformat(day) + timedelta(days=1)).isoformat()


def next_date_after(events: Sequence[EventModel], today: str | None = None) -> str:
    """latest_date + 1 calendar day, or today's UTC date for an undated history."""
    latest = latest_date(events)
    if latest is None:
        return today or today_utc()
    return next_day(latest)


def dedupe_key(event: EventModel) -> tuple:
    """Identity used for deduplication.

    Published news (visible or hidden) share one identity space keyed by
    (date, lowercase title), so the same story cannot appear twice.
    """
    if isinstance(event, NEWS_TYPES):
        return ("news", event.date, event.title.lower())
    if isinstance(event, NewsPatched):
        patch = json.dumps(event.patch.overrides(), sort_keys=True)
        return ("news-patched", event.target_id, event.date, patch)
    if isinstance(event, ScenarioHeadCompleted):
        return ("scenario-head-completed", event.date)
    if isinstance(event, GameOver):
        return ("game-over", event.date, event.summary)
    if isinstance(event, (TurnStarted, TurnFinished)):
        return (event.type, event.from_, event.until, event.actor)
    if isinstance(event, TELEMETRY_TYPES):
        return (event.type, event.target_id, event.at)
    return (event.type, json.dumps(event.to_record(), sort_keys=True))


def sort_and_dedupe(events: Iterable[EventModel]) -> list[EventModel]:
    """Deduplicate (last write wins) then stable-sort by date.

    On a key collision the later event replaces the earlier one but keeps the
    earlier one's slot, so ties on date stay in first-insertion order. Undated
    telemetry inherits the date of the dated event before it, which keeps it
    next to the story it refers to.
    """
    deduped: dict[tuple, EventModel] = {}
    for event in events:
        deduped[dedupe_key(event)] = with_canonical_id(event)

    keyed: list[tuple[str, EventModel]] = []
    carry = ""
    for event in deduped.values():
        day = event_date(event)
        if day:
            carry = day
        keyed.append((day or carry, event))
    keyed.sort(key=lambda pair: pair[0])
    return [event for _, event in keyed]


def project_visible(
    events: Iterable[EventModel],
    include_hidden: bool = True,
    diagnostics: list[OrderingInconsistency] | None = None,
    warnings: Any = None,
) -> list[EventModel]:
    """Fold patches into their published items; return current attributes per item.

    Publishes are collected first and patches applied afterwards in date
    order, so the result does not depend on whether a patch was logged before
    its target. Patches whose target id is unknown are dropped and reported
    through ``diagnostics``/``warnings`` (never raised).
    """
    ordered = sort_and_dedupe(events)
    items: dict[str, EventModel] = {}
    for event in ordered:
        if isinstance(event, NEWS_TYPES):
            items[news_id(event)] = event

    for event in ordered:
        if not isinstance(event, NewsPatched):
            continue
        target = items.get(event.target_id)
        if target is None:
            report_inconsistency(
                OrderingInconsistency(target_id=event.target_id, date=event.date),
                diagnostics=diagnostics,
                warnings=warnings,
            )
            continue
        items[event.target_id] = target.model_copy(update=event.patch.overrides())

    projected = sorted(items.values(), key=lambda e: e.date)
    if not include_hidden:
        projected = [e for e in projected if not isinstance(e, HiddenNewsPublished)]
    return projected


def assert_chronology(history: Sequence[EventModel], additions: Iterable[EventModel]) -> None:
    """Raise if any addition is dated before the latest date already in history."""
    last = latest_date(history)
    if not last:
        return
    for event in additions:
        day = event_date(event)
        if day is not None and day < last:
            raise ChronologyViolation(f"Model returned an event with a past date: {day} (latest {last})")


@dataclass(frozen=True)
class AggregatedState:
    """Derived, re-computable summary of a history."""
    events: list[EventModel] = field(default_factory=list)
    latest_date: str | None = None
    event_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [e.to_record() for e in self.events],
            "latestDate": self.latest_date,
            "eventCount": self.event_count,
        }


def aggregate(history: Iterable[EventModel]) -> AggregatedState:
    events = sort_and_dedupe(history)
    return AggregatedState(events=events, latest_date=latest_date(events), event_count=len(events))
