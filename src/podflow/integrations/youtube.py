"""Async client for the YouTube Data API v3.

Every call is charged against the organization's daily quota before it is
sent (see YouTubeQuotaManager). Transient network failures are retried
with tenacity; anything still failing, and any non-2xx response, surfaces
as IntegrationError.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.podflow.core.errors import IntegrationError
from src.podflow.integrations.models import YouTubeChannel, YouTubeVideo
from src.podflow.integrations.youtube_quota import YouTubeQuotaManager

logger = structlog.get_logger(__name__)

_youtube_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)

_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)

# videos.list accepts at most 50 ids per call
VIDEO_BATCH_SIZE = 50


def parse_duration(value: str | None) -> int | None:
    """Convert an ISO 8601 duration (``PT1H2M3S``) to seconds."""
    if not value:
        return None
    match = _DURATION_RE.match(value)
    if match is None:
        return None
    parts = {name: int(v) for name, v in match.groupdict().items() if v}
    return (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _as_int(value: Any) -> int | None:
    return int(value) if value is not None else None


class YouTubeClient:
    """YouTube Data API client scoped to one organization per call.

    Args:
        api_key: API key sent as the ``key`` query parameter.
        quota: Quota manager charged before each request.
        base_url: API root, overridable for tests.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        quota: YouTubeQuotaManager,
        *,
        base_url: str = "https://www.googleapis.com/youtube/v3",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._quota = quota
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout, transport=self._transport)

    @_youtube_retry
    async def _send(self, resource: str, params: dict[str, Any]) -> httpx.Response:
        async with self._client() as client:
            return await client.get(f"/{resource}", params={**params, "key": self._api_key})

    async def _call(
        self,
        organization_slug: str,
        endpoint: str,
        params: dict[str, Any],
        *,
        daily_limit: int | None = None,
    ) -> dict[str, Any]:
        if not self.configured:
            raise IntegrationError("YouTube API key is not configured", reason="not_configured")

        parts = len(str(params.get("part", "")).split(",")) if params.get("part") else 1
        await self._quota.consume(organization_slug, endpoint, parts=parts, daily_limit=daily_limit)

        resource = endpoint.split(".", 1)[0]
        try:
            response = await self._send(resource, params)
        except httpx.HTTPError as exc:
            logger.error("youtube.request_failed", endpoint=endpoint, organization=organization_slug, error=str(exc))
            raise IntegrationError("YouTube API request failed") from exc

        if response.status_code >= 400:
            logger.error(
                "youtube.bad_status",
                endpoint=endpoint,
                organization=organization_slug,
                status_code=response.status_code,
            )
            raise IntegrationError(f"YouTube API returned {response.status_code}", upstream_status=response.status_code)
        return response.json()

    async def get_channel(
        self, organization_slug: str, channel_id: str, *, daily_limit: int | None = None
    ) -> YouTubeChannel | None:
        data = await self._call(
            organization_slug,
            "channels.list",
            {"part": "snippet,statistics,contentDetails", "id": channel_id},
            daily_limit=daily_limit,
        )
        items = data.get("items") or []
        if not items:
            return None
        item = items[0]
        snippet = item.get("snippet", {})
        stats = item.get("statistics", {})
        uploads = item.get("contentDetails", {}).get("relatedPlaylists", {}).get("uploads")
        return YouTubeChannel(
            id=item["id"],
            title=snippet.get("title", ""),
            description=snippet.get("description"),
            uploads_playlist_id=uploads,
            subscriber_count=_as_int(stats.get("subscriberCount")),
            video_count=_as_int(stats.get("videoCount")),
            view_count=_as_int(stats.get("viewCount")),
        )

    async def list_playlist_video_ids(
        self,
        organization_slug: str,
        playlist_id: str,
        *,
        max_results: int = 50,
        daily_limit: int | None = None,
    ) -> list[str]:
        data = await self._call(
            organization_slug,
            "playlistItems.list",
            {"part": "contentDetails", "playlistId": playlist_id, "maxResults": min(max_results, 50)},
            daily_limit=daily_limit,
        )
        return [
            item["contentDetails"]["videoId"]
            for item in data.get("items") or []
            if item.get("contentDetails", {}).get("videoId")
        ]

    async def get_videos(
        self, organization_slug: str, video_ids: list[str], *, daily_limit: int | None = None
    ) -> list[YouTubeVideo]:
        videos: list[YouTubeVideo] = []
        for start in range(0, len(video_ids), VIDEO_BATCH_SIZE):
            batch = video_ids[start : start + VIDEO_BATCH_SIZE]
            data = await self._call(
                organization_slug,
                "videos.list",
                {"part": "snippet,statistics,contentDetails", "id": ",".join(batch)},
                daily_limit=daily_limit,
            )
            for item in data.get("items") or []:
                snippet = item.get("snippet", {})
                stats = item.get("statistics", {})
                videos.append(
                    YouTubeVideo(
                        id=item["id"],
                        title=snippet.get("title", ""),
                        published_at=_parse_timestamp(snippet.get("publishedAt")),
                        duration_seconds=parse_duration(item.get("contentDetails", {}).get("duration")),
                        view_count=int(stats.get("viewCount", 0)),
                        like_count=int(stats.get("likeCount", 0)),
                        comment_count=int(stats.get("commentCount", 0)),
                    )
                )
        return videos

    async def list_channel_videos(
        self,
        organization_slug: str,
        channel_id: str,
        *,
        max_results: int = 50,
        daily_limit: int | None = None,
    ) -> list[YouTubeVideo]:
        """Most recent uploads of a channel with statistics."""
        channel = await self.get_channel(organization_slug, channel_id, daily_limit=daily_limit)
        if channel is None or not channel.uploads_playlist_id:
            return []
        video_ids = await self.list_playlist_video_ids(
            organization_slug, channel.uploads_playlist_id, max_results=max_results, daily_limit=daily_limit
        )
        if not video_ids:
            return []
        videos = await self.get_videos(organization_slug, video_ids, daily_limit=daily_limit)
        logger.info(
            "youtube.channel_videos_fetched",
            organization=organization_slug,
            channel_id=channel_id,
            count=len(videos),
        )
        return videos
