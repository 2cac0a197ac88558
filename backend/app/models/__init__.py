"""Application models (events, commands, replay tapes)."""
from .events import (
    Event,
    EventModel,
    GameOver,
    HiddenNewsPublished,
    NewsClosed,
    NewsOpened,
    NewsPatch,
    NewsPatched,
    NewsPublished,
    ScenarioEvent,
    ScenarioHeadCompleted,
    TurnFinished,
    TurnStarted,
)
from .commands import (
    Command,
    GameOverCommand,
    PatchNews,
    PublishHiddenNews,
    PublishNews,
)
from .replay import ReplayChunk, ReplayMeta, ReplayRequest, ReplayTape

__all__ = [
    "Event",
    "EventModel",
    "GameOver",
    "HiddenNewsPublished",
    "NewsClosed",
    "NewsOpened",
    "NewsPatch",
    "NewsPatched",
    "NewsPublished",
    "ScenarioEvent",
    "ScenarioHeadCompleted",
    "TurnFinished",
    "TurnStarted",
    "Command",
    "GameOverCommand",
    "PatchNews",
    "PublishHiddenNews",
    "PublishNews",
    "ReplayChunk",
    "ReplayMeta",
    "ReplayRequest",
    "ReplayTape",
]
