"""Show and episode repositories over the organization schema."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from src.podflow.core.errors import TenantQueryError, ValidationFailed
from src.podflow.repositories.base import Row, TenantRepository, build_update, parse_uuid
from src.podflow.schemas.common import Listing
from src.podflow.schemas.shows import EpisodeCreate, EpisodeRead, ShowCreate, ShowRead


def _row_to_show(row: Row) -> ShowRead:
    return ShowRead(
        id=str(row["id"]),
        name=row["name"],
        host=row.get("host"),
        category=row.get("category"),
        is_active=row.get("is_active", True),
        active_from=row.get("active_from"),
        active_until=row.get("active_until"),
        youtube_channel_id=row.get("youtube_channel_id"),
        megaphone_podcast_id=row.get("megaphone_podcast_id"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_episode(row: Row) -> EpisodeRead:
    return EpisodeRead(
        id=str(row["id"]),
        show_id=str(row["show_id"]),
        title=row["title"],
        episode_number=row.get("episode_number"),
        air_date=row.get("air_date"),
        duration_seconds=row.get("duration_seconds"),
        status=row.get("status") or "scheduled",
        youtube_video_id=row.get("youtube_video_id"),
        megaphone_episode_id=row.get("megaphone_episode_id"),
        youtube_view_count=row.get("view_count"),
        youtube_like_count=row.get("like_count"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


_EPISODE_SELECT = """
    SELECT e.*, m.view_count, m.like_count
    FROM episodes e
    LEFT JOIN episode_youtube_metrics m ON m.episode_id = e.id
"""


class ShowRepository(TenantRepository):
    resource = "shows"

    async def list(self, organization_slug: str, include_inactive: bool = False) -> Listing[ShowRead]:
        where = "" if include_inactive else "WHERE is_active = true"
        return await self._list(
            organization_slug,
            f"SELECT * FROM shows {where} ORDER BY name",
            None,
            _row_to_show,
        )

    async def get(self, organization_slug: str, show_id: str) -> ShowRead | None:
        key = parse_uuid(show_id)
        if key is None:
            return None
        return await self._get(organization_slug, "SELECT * FROM shows WHERE id = $1", [key], _row_to_show)

    async def create(self, organization_slug: str, data: ShowCreate) -> ShowRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO shows (name, host, category, active_from, active_until, youtube_channel_id, megaphone_podcast_id)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            [
                data.name,
                data.host,
                data.category,
                data.active_from,
                data.active_until,
                data.youtube_channel_id,
                data.megaphone_podcast_id,
            ],
            _row_to_show,
        )

    async def update(self, organization_slug: str, show_id: str, fields: dict[str, Any]) -> ShowRead | None:
        key = parse_uuid(show_id)
        if key is None:
            return None
        sql, params = build_update("shows", fields, key)
        return await self._write_one(organization_slug, sql, params, _row_to_show)

    async def deactivate(self, organization_slug: str, show_id: str) -> bool:
        """Soft delete: schedules and rate history keep pointing at the show."""
        updated = await self.update(organization_slug, show_id, {"is_active": False})
        return updated is not None


class EpisodeRepository(TenantRepository):
    resource = "episodes"

    async def list(self, organization_slug: str, show_id: str | None = None) -> Listing[EpisodeRead]:
        if show_id is not None:
            key = parse_uuid(show_id)
            if key is None:
                return Listing.of([])
            return await self._list(
                organization_slug,
                f"{_EPISODE_SELECT} WHERE e.show_id = $1 ORDER BY e.air_date DESC NULLS LAST, e.episode_number DESC",
                [key],
                _row_to_episode,
            )
        return await self._list(
            organization_slug,
            f"{_EPISODE_SELECT} ORDER BY e.air_date DESC NULLS LAST",
            None,
            _row_to_episode,
        )

    async def get(self, organization_slug: str, episode_id: str) -> EpisodeRead | None:
        key = parse_uuid(episode_id)
        if key is None:
            return None
        return await self._get(organization_slug, f"{_EPISODE_SELECT} WHERE e.id = $1", [key], _row_to_episode)

    async def create(self, organization_slug: str, data: EpisodeCreate) -> EpisodeRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO episodes (show_id, title, episode_number, air_date, duration_seconds, status,
                                  youtube_video_id, megaphone_episode_id)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
            """,
            [
                parse_uuid(data.show_id),
                data.title,
                data.episode_number,
                data.air_date,
                data.duration_seconds,
                data.status.value,
                data.youtube_video_id,
                data.megaphone_episode_id,
            ],
            _row_to_episode,
        )

    async def update(self, organization_slug: str, episode_id: str, fields: dict[str, Any]) -> EpisodeRead | None:
        key = parse_uuid(episode_id)
        if key is None:
            return None
        values = {k: (v.value if hasattr(v, "value") else v) for k, v in fields.items()}
        sql, params = build_update("episodes", values, key)
        return await self._write_one(organization_slug, sql, params, _row_to_episode)

    async def delete(self, organization_slug: str, episode_id: str) -> bool:
        key = parse_uuid(episode_id)
        if key is None:
            return False
        try:
            rows = await self._executor.fetch_or_raise(
                organization_slug, "DELETE FROM episodes WHERE id = $1 RETURNING id", [key]
            )
        except TenantQueryError as exc:
            if exc.category == "foreign_key":
                raise ValidationFailed(
                    "Episode is referenced by schedules or orders",
                    reason="in_use",
                ) from exc
            raise
        return bool(rows)

    async def upsert_from_youtube(
        self, organization_slug: str, show_id: str, videos: Sequence[dict[str, Any]]
    ) -> tuple[int, int]:
        """Create or refresh episodes for YouTube uploads. Returns ``(created, updated)``.

        Each video dict carries ``video_id``, ``title``, ``published``,
        ``duration_seconds`` and the view/like/comment counts.
        """
        show_key = parse_uuid(show_id)
        created = updated = 0
        async with self._executor.transaction(organization_slug) as tx:
            for video in videos:
                existing = await tx.fetch_one(
                    "SELECT id FROM episodes WHERE youtube_video_id = $1", [video["video_id"]]
                )
                if existing is None:
                    row = await tx.fetch_one(
                        """
                        INSERT INTO episodes (show_id, title, air_date, duration_seconds, status, youtube_video_id)
                        VALUES ($1, $2, $3, $4, 'published', $5)
                        RETURNING id
                        """,
                        [
                            show_key,
                            video["title"],
                            video.get("published"),
                            video.get("duration_seconds"),
                            video["video_id"],
                        ],
                    )
                    created += 1
                else:
                    row = existing
                    await tx.execute(
                        "UPDATE episodes SET title = $1, duration_seconds = $2, updated_at = now() WHERE id = $3",
                        [video["title"], video.get("duration_seconds"), existing["id"]],
                    )
                    updated += 1
                await tx.execute(
                    """
                    INSERT INTO episode_youtube_metrics (episode_id, view_count, like_count, comment_count, synced_at)
                    VALUES ($1, $2, $3, $4, now())
                    ON CONFLICT (episode_id) DO UPDATE
                    SET view_count = EXCLUDED.view_count,
                        like_count = EXCLUDED.like_count,
                        comment_count = EXCLUDED.comment_count,
                        synced_at = now()
                    """,
                    [
                        row["id"],
                        video.get("view_count", 0),
                        video.get("like_count", 0),
                        video.get("comment_count", 0),
                    ],
                )
        return created, updated

    async def upsert_from_megaphone(
        self, organization_slug: str, show_id: str, episodes: Sequence[dict[str, Any]]
    ) -> tuple[int, int]:
        """Create or refresh episodes for Megaphone records. Returns ``(created, updated)``."""
        show_key = parse_uuid(show_id)
        created = updated = 0
        async with self._executor.transaction(organization_slug) as tx:
            for episode in episodes:
                existing = await tx.fetch_one(
                    "SELECT id FROM episodes WHERE megaphone_episode_id = $1", [episode["episode_id"]]
                )
                if existing is None:
                    await tx.execute(
                        """
                        INSERT INTO episodes (show_id, title, air_date, duration_seconds, status, megaphone_episode_id)
                        VALUES ($1, $2, $3, $4, 'published', $5)
                        """,
                        [
                            show_key,
                            episode["title"],
                            episode.get("published"),
                            episode.get("duration_seconds"),
                            episode["episode_id"],
                        ],
                    )
                    created += 1
                else:
                    await tx.execute(
                        "UPDATE episodes SET title = $1, duration_seconds = $2, updated_at = now() WHERE id = $3",
                        [episode["title"], episode.get("duration_seconds"), existing["id"]],
                    )
                    updated += 1
        return created, updated

