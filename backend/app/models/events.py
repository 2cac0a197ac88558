"""Pydantic event models for the append-only news log.

Events are facts. Each variant is tagged by ``type``; the ``Event`` union is
discriminated on that tag so an unknown or missing tag fails validation
instead of falling through to a looser variant. Wire names are camelCase
(``targetId``, ``postMortem``, ``from``); Python attributes are snake_case.
"""
from __future__ import annotations

import re
from datetime import date as _date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator, model_validator

from backend.app.constants import DATE_PATTERN, ICON_SET

_DATE_RE = re.compile(DATE_PATTERN)
_ICONS = frozenset(ICON_SET)

Actor = Literal["player", "game_master"]


def check_date(value: str) -> str:
    """Validate a YYYY-MM-DD calendar day and return it unchanged."""
    if not _DATE_RE.match(value):
        raise ValueError(f"date must match YYYY-MM-DD, got {value!r}")
    try:
        _date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"not a calendar date: {value!r}") from exc
    return value


def check_icon(value: str) -> str:
    if value not in _ICONS:
        raise ValueError(f"unknown icon {value!r}")
    return value


class RecordModel(BaseModel):
    """Base for immutable wire records: no unknown keys, camelCase aliases."""
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """JSON-ready dict using wire names; unset optionals are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NewsPatch(RecordModel):
    """Partial override of a published news item. At least one field is required."""
    date: Optional[str] = None
    icon: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: Optional[str]) -> Optional[str]:
        return check_date(v) if v is not None else v

    @field_validator("icon")
    @classmethod
    def _valid_icon(cls, v: Optional[str]) -> Optional[str]:
        return check_icon(v) if v is not None else v

    @model_validator(mode="after")
    def _non_empty(self) -> NewsPatch:
        if self.date is None and self.icon is None and self.title is None and self.description is None:
            raise ValueError("patch must include at least one field")
        return self

    def overrides(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class EventModel(RecordModel):
    """Common base for log events; subclasses pin ``type`` to a literal tag."""
    type: str


class _NewsBody(EventModel):
    id: Optional[str] = Field(default=None, min_length=1)
    date: str
    icon: str
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    post_mortem: Optional[StrictBool] = Field(default=None, alias="postMortem")

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)

    @field_validator("icon")
    @classmethod
    def _valid_icon(cls, v: str) -> str:
        return check_icon(v)


class NewsPublished(_NewsBody):
    type: Literal["news-published"] = "news-published"


class HiddenNewsPublished(_NewsBody):
    """Enters history and the prompt but is withheld from the visible timeline."""
    type: Literal["hidden-news-published"] = "hidden-news-published"


class NewsPatched(EventModel):
    type: Literal["news-patched"] = "news-patched"
    target_id: str = Field(alias="targetId", min_length=1)
    date: str
    patch: NewsPatch

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)


class ScenarioHeadCompleted(EventModel):
    """Marks the scripted seed portion of the scenario as exhausted."""
    type: Literal["scenario-head-completed"] = "scenario-head-completed"
    date: str

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)


class GameOver(EventModel):
    type: Literal["game-over"] = "game-over"
    date: str
    summary: str = Field(min_length=1)

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)


class _TurnWindow(EventModel):
    actor: Actor
    from_: str = Field(alias="from")
    until: str

    @field_validator("from_", "until")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)

    @model_validator(mode="after")
    def _ordered(self):
        if self.until < self.from_:
            raise ValueError("turn window must not end before it starts")
        return self


class TurnStarted(_TurnWindow):
    type: Literal["turn-started"] = "turn-started"


class TurnFinished(_TurnWindow):
    type: Literal["turn-finished"] = "turn-finished"


class _Telemetry(EventModel):
    target_id: str = Field(alias="targetId", min_length=1)
    at: str = Field(min_length=1)  # ISO timestamp from the client


class NewsOpened(_Telemetry):
    """Player opened a story. Coalesced per player turn by the prompt projector."""
    type: Literal["news-opened"] = "news-opened"


class NewsClosed(_Telemetry):
    type: Literal["news-closed"] = "news-closed"


Event = Annotated[
    Union[
        NewsPublished,
        HiddenNewsPublished,
        NewsPatched,
        ScenarioHeadCompleted,
        GameOver,
        TurnStarted,
        TurnFinished,
        NewsOpened,
        NewsClosed,
    ],
    Field(discriminator="type"),
]

ScenarioEvent = Union[NewsPublished, HiddenNewsPublished]
NEWS_TYPES = (NewsPublished, HiddenNewsPublished)
TELEMETRY_TYPES = (NewsOpened, NewsClosed)
