"""Async client for the Megaphone publishing API.

Same retry policy as the YouTube client: connection errors and timeouts
are retried up to three times, other failures become IntegrationError.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.podflow.core.errors import IntegrationError
from src.podflow.integrations.models import MegaphoneEpisode, MegaphonePodcast

logger = structlog.get_logger(__name__)

_megaphone_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class MegaphoneClient:
    """Megaphone API client for one network.

    Args:
        api_token: Network API token (Bearer auth).
        network_id: Megaphone network whose podcasts are listed.
        base_url: API root, overridable for tests.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        api_token: str,
        network_id: str,
        *,
        base_url: str = "https://cms.megaphone.fm/api",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._network_id = network_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Accept": "application/json",
        }
        self._configured = bool(api_token and network_id)

    @property
    def configured(self) -> bool:
        return self._configured

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    @_megaphone_retry
    async def _send(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        async with self._client() as client:
            return await client.get(path, params=params)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not self._configured:
            raise IntegrationError("Megaphone is not configured", reason="not_configured")
        try:
            response = await self._send(path, params)
        except httpx.HTTPError as exc:
            logger.error("megaphone.request_failed", path=path, error=str(exc))
            raise IntegrationError("Megaphone API request failed") from exc
        if response.status_code >= 400:
            logger.error("megaphone.bad_status", path=path, status_code=response.status_code)
            raise IntegrationError(
                f"Megaphone API returned {response.status_code}", upstream_status=response.status_code
            )
        return response.json()

    async def list_podcasts(self) -> list[MegaphonePodcast]:
        data = await self._get(f"/networks/{self._network_id}/podcasts")
        return [
            MegaphonePodcast(
                id=item["id"],
                title=item.get("title", ""),
                author=item.get("author"),
                episodes_count=item.get("episodesCount"),
            )
            for item in data or []
        ]

    async def list_episodes(self, podcast_id: str, *, per_page: int = 100) -> list[MegaphoneEpisode]:
        data = await self._get(
            f"/networks/{self._network_id}/podcasts/{podcast_id}/episodes",
            {"per_page": per_page},
        )
        episodes = []
        for item in data or []:
            duration = item.get("duration")
            episodes.append(
                MegaphoneEpisode(
                    id=item["id"],
                    podcast_id=podcast_id,
                    title=item.get("title", ""),
                    pub_date=_parse_timestamp(item.get("pubdate")),
                    duration_seconds=int(float(duration)) if duration is not None else None,
                )
            )
        logger.info("megaphone.episodes_fetched", podcast_id=podcast_id, count=len(episodes))
        return episodes
