"""Commands: the intents a provider (or the player UI) may submit.

Commands are a strict subset of what the log can hold; normalization turns
each one into exactly one event (see ``backend.app.core.normalize``).
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, field_validator

from backend.app.models.events import NewsPatch, RecordModel, check_date, check_icon


class CommandModel(RecordModel):
    type: str


class _PublishBody(CommandModel):
    id: Optional[str] = Field(default=None, min_length=1)
    date: str
    icon: str
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)

    @field_validator("icon")
    @classmethod
    def _valid_icon(cls, v: str) -> str:
        return check_icon(v)


class PublishNews(_PublishBody):
    type: Literal["publish-news"] = "publish-news"


class PublishHiddenNews(_PublishBody):
    type: Literal["publish-hidden-news"] = "publish-hidden-news"


class PatchNews(CommandModel):
    type: Literal["patch-news"] = "patch-news"
    target_id: str = Field(alias="targetId", min_length=1)
    date: str
    patch: NewsPatch

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)


class GameOverCommand(CommandModel):
    type: Literal["game-over"] = "game-over"
    date: str
    summary: str = Field(min_length=1)

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        return check_date(v)


Command = Annotated[
    Union[PublishNews, PublishHiddenNews, PatchNews, GameOverCommand],
    Field(discriminator="type"),
]

COMMAND_TYPES: tuple[str, ...] = ("publish-news", "publish-hidden-news", "patch-news", "game-over")
