"""Pydantic schemas for shows and episodes."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from src.podflow.schemas.common import non_nullable


class ShowCreate(BaseModel):
    """Request body for creating a show.

    ``active_until`` left empty means the show has no scheduled end.
    """

    name: str = Field(..., min_length=1, max_length=200)
    host: str | None = None
    category: str | None = None
    active_from: date | None = None
    active_until: date | None = None
    youtube_channel_id: str | None = None
    megaphone_podcast_id: str | None = None

    @model_validator(mode="after")
    def _check_window(self):
        if self.active_from and self.active_until and self.active_until < self.active_from:
            raise ValueError("active_until must not be before active_from")
        return self


class ShowUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    host: str | None = None
    category: str | None = None
    is_active: bool | None = None
    active_from: date | None = None
    active_until: date | None = None
    youtube_channel_id: str | None = None
    megaphone_podcast_id: str | None = None

    _not_null = non_nullable("name", "is_active")


class ShowRead(BaseModel):
    id: str
    name: str
    host: str | None = None
    category: str | None = None
    is_active: bool = True
    active_from: date | None = None
    active_until: date | None = None
    youtube_channel_id: str | None = None
    megaphone_podcast_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def airs_on(self, day: date) -> bool:
        """True when ``day`` falls inside the show's active window."""
        if not self.is_active:
            return False
        if self.active_from and day < self.active_from:
            return False
        if self.active_until and day > self.active_until:
            return False
        return True


class EpisodeStatus(str, Enum):
    SCHEDULED = "scheduled"
    RECORDED = "recorded"
    PUBLISHED = "published"


class EpisodeCreate(BaseModel):
    show_id: str
    title: str = Field(..., min_length=1, max_length=300)
    episode_number: int | None = Field(default=None, ge=1)
    air_date: date | None = None
    duration_seconds: int | None = Field(default=None, ge=0)
    status: EpisodeStatus = EpisodeStatus.SCHEDULED
    youtube_video_id: str | None = None
    megaphone_episode_id: str | None = None


class EpisodeUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    episode_number: int | None = Field(default=None, ge=1)
    air_date: date | None = None
    duration_seconds: int | None = Field(default=None, ge=0)
    status: EpisodeStatus | None = None
    youtube_video_id: str | None = None
    megaphone_episode_id: str | None = None

    _not_null = non_nullable("title", "status")


class EpisodeRead(BaseModel):
    id: str
    show_id: str
    title: str
    episode_number: int | None = None
    air_date: date | None = None
    duration_seconds: int | None = None
    status: EpisodeStatus = EpisodeStatus.SCHEDULED
    youtube_video_id: str | None = None
    megaphone_episode_id: str | None = None
    youtube_view_count: int | None = None
    youtube_like_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
