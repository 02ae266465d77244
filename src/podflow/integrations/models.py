"""Typed records returned by the YouTube and Megaphone clients."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class QuotaStatus(BaseModel):
    organization: str
    day: date
    used: int
    limit: int
    remaining: int
    percentage_used: float
    enforcement_enabled: bool
    reset_at: datetime
    threshold_crossed: int | None = None


class YouTubeChannel(BaseModel):
    id: str
    title: str
    description: str | None = None
    uploads_playlist_id: str | None = None
    subscriber_count: int | None = None
    video_count: int | None = None
    view_count: int | None = None


class YouTubeVideo(BaseModel):
    id: str
    title: str
    published_at: datetime | None = None
    duration_seconds: int | None = None
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0


class MegaphonePodcast(BaseModel):
    id: str
    title: str
    author: str | None = None
    episodes_count: int | None = None


class MegaphoneEpisode(BaseModel):
    id: str
    podcast_id: str
    title: str
    pub_date: datetime | None = None
    duration_seconds: int | None = None


class SyncResult(BaseModel):
    show_id: str
    source: str
    fetched: int = 0
    created: int = 0
    updated: int = 0
    quota_used: int | None = None
