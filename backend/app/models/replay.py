"""Replay tape models: one recorded provider streaming session.

Stored on disk as a single JSON document (not JSONL)::

    {"meta": {...}, "request": {"model", "contents", "config"}, "stream": [{"delayNs", "text"}, ...]}
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from backend.app.models.events import RecordModel


class ReplayMeta(RecordModel):
    model: str
    recorded_at: str = Field(alias="recordedAt")  # ISO timestamp
    label: Optional[str] = None
    sdk: Optional[str] = None
    comment: Optional[str] = None


class ReplayRequest(RecordModel):
    """Exact provider request; must be reproduced bit-for-bit on strict replay."""
    model: str
    contents: str
    config: dict[str, Any] = Field(default_factory=dict)


class ReplayChunk(RecordModel):
    delay_ns: int = Field(alias="delayNs", ge=0)  # nanoseconds since previous chunk
    text: str


class ReplayTape(RecordModel):
    meta: ReplayMeta
    request: ReplayRequest
    stream: list[ReplayChunk] = Field(default_factory=list)
