"""Command -> event normalization and canonical news ids. Deterministic only."""
from __future__ import annotations

import re

from backend.app.constants import SLUG_MAX_LENGTH
from backend.app.models.commands import GameOverCommand, PatchNews, PublishHiddenNews, PublishNews
from backend.app.models.events import (
    EventModel,
    GameOver,
    HiddenNewsPublished,
    NewsPatched,
    NewsPublished,
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumerics to '-', trim dashes, cap length."""
    slug = _NON_ALNUM.sub("-", (text or "").lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


def generate_news_id(kind: str, date: str, title: str) -> str:
    """Canonical id reproducible from (date, title) alone.

    ``kind`` is ``"news"`` or ``"hidden-news"``.
    """
    prefix = "hidden-news" if kind == "hidden-news" else "news"
    return f"{prefix}-{date}-{slugify(title)}"


def news_id(event: NewsPublished | HiddenNewsPublished) -> str:
    """Explicit id if present, otherwise the canonical derived id."""
    if event.id:
        return event.id
    kind = "hidden-news" if isinstance(event, HiddenNewsPublished) else "news"
    return generate_news_id(kind, event.date, event.title)


def with_canonical_id(event: EventModel) -> EventModel:
    """Return news events with their id filled in; other events unchanged."""
    if isinstance(event, (NewsPublished, HiddenNewsPublished)) and not event.id:
        return event.model_copy(update={"id": news_id(event)})
    return event


def normalize(command) -> EventModel:
    """Convert one validated command into its event. Same command, same event."""
    if isinstance(command, PublishNews):
        return NewsPublished(
            id=command.id or generate_news_id("news", command.date, command.title),
            date=command.date,
            icon=command.icon,
            title=command.title,
            description=command.description,
        )
    if isinstance(command, PublishHiddenNews):
        return HiddenNewsPublished(
            id=command.id or generate_news_id("hidden-news", command.date, command.title),
            date=command.date,
            icon=command.icon,
            title=command.title,
            description=command.description,
        )
    if isinstance(command, PatchNews):
        return NewsPatched(target_id=command.target_id, date=command.date, patch=command.patch)
    if isinstance(command, GameOverCommand):
        return GameOver(date=command.date, summary=command.summary)
    raise TypeError(f"Unsupported command: {type(command).__name__}")


def normalize_all(commands) -> list[EventModel]:
    return [normalize(c) for c in commands]
