"""Pull episodes for a show from YouTube or Megaphone into the org schema."""

from __future__ import annotations

import structlog

from src.podflow.core.errors import ValidationFailed
from src.podflow.integrations.megaphone import MegaphoneClient
from src.podflow.integrations.models import SyncResult
from src.podflow.integrations.youtube import YouTubeClient
from src.podflow.repositories.shows import EpisodeRepository
from src.podflow.schemas.shows import ShowRead

logger = structlog.get_logger(__name__)


async def sync_youtube_show(
    organization_slug: str,
    show: ShowRead,
    client: YouTubeClient,
    episodes: EpisodeRepository,
    *,
    daily_limit: int | None = None,
    max_results: int = 50,
) -> SyncResult:
    """Create or refresh one episode per recent upload of the show's channel.

    View, like and comment counts land in ``episode_youtube_metrics``.
    """
    if not show.youtube_channel_id:
        raise ValidationFailed("Show has no YouTube channel configured", reason="not_linked")

    videos = await client.list_channel_videos(
        organization_slug, show.youtube_channel_id, max_results=max_results, daily_limit=daily_limit
    )
    created, updated = await episodes.upsert_from_youtube(
        organization_slug,
        show.id,
        [
            {
                "video_id": v.id,
                "title": v.title,
                "published": v.published_at.date() if v.published_at else None,
                "duration_seconds": v.duration_seconds,
                "view_count": v.view_count,
                "like_count": v.like_count,
                "comment_count": v.comment_count,
            }
            for v in videos
        ],
    )
    logger.info(
        "youtube_sync_completed",
        organization=organization_slug,
        show_id=show.id,
        fetched=len(videos),
        created=created,
        updated=updated,
    )
    return SyncResult(show_id=show.id, source="youtube", fetched=len(videos), created=created, updated=updated)


async def sync_megaphone_show(
    organization_slug: str,
    show: ShowRead,
    client: MegaphoneClient,
    episodes: EpisodeRepository,
) -> SyncResult:
    if not show.megaphone_podcast_id:
        raise ValidationFailed("Show has no Megaphone podcast configured", reason="not_linked")

    records = await client.list_episodes(show.megaphone_podcast_id)
    created, updated = await episodes.upsert_from_megaphone(
        organization_slug,
        show.id,
        [
            {
                "episode_id": r.id,
                "title": r.title,
                "published": r.pub_date.date() if r.pub_date else None,
                "duration_seconds": r.duration_seconds,
            }
            for r in records
        ],
    )
    logger.info(
        "megaphone_sync_completed",
        organization=organization_slug,
        show_id=show.id,
        fetched=len(records),
        created=created,
        updated=updated,
    )
    return SyncResult(show_id=show.id, source="megaphone", fetched=len(records), created=created, updated=updated)
