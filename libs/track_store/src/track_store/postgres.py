"""PostgreSQL track store built on a psycopg 3 async connection pool.

Every scan re-runs its missing-attribute predicate against the current table
state, and every commit is idempotent: scalar columns are only written while
still NULL and platform links use ``ON CONFLICT DO NOTHING`` on
``(track_id, platform)``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import date
from typing import Any, TypeVar

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from common.config import DatabaseConfig
from common.models import (
    PRIMARY_PLATFORM,
    CommitResult,
    CoverageStats,
    PlatformLink,
    TrackAttribute,
    TrackRef,
)

from .base import TrackStore
from .errors import TrackStoreConnectionError, TrackStoreError, TrackStoreNotOpenError
from .utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Live predicates selecting tracks that still need each attribute.
MISSING_PREDICATES: dict[TrackAttribute, str] = {
    TrackAttribute.EMBEDDING: "t.embedding IS NULL",
    TrackAttribute.RELEASE_DATE: "t.release_date IS NULL",
    TrackAttribute.PLATFORM_LINKS: (
        "t.platforms_resolved_at IS NULL"
        " AND EXISTS (SELECT 1 FROM track_platform_ids p"
        f" WHERE p.track_id = t.id AND p.platform = '{PRIMARY_PLATFORM.value}')"
        " AND NOT EXISTS (SELECT 1 FROM track_platform_ids p"
        f" WHERE p.track_id = t.id AND p.platform <> '{PRIMARY_PLATFORM.value}')"
    ),
}

_TRACK_COLUMNS = f"""
    t.id,
    t.title,
    t.popularity,
    al.title AS album_title,
    COALESCE((
        SELECT array_agg(a.name ORDER BY ta.is_primary DESC NULLS LAST, a.name)
        FROM tracks_to_artists ta
        JOIN artists a ON a.id = ta.artist_id
        WHERE ta.track_id = t.id
    ), ARRAY[]::text[]) AS artist_names,
    COALESCE((
        SELECT array_agg(g.name ORDER BY g.name)
        FROM tracks_to_genres tg
        JOIN genres g ON g.id = tg.genre_id
        WHERE tg.track_id = t.id
    ), ARRAY[]::text[]) AS genres,
    (
        SELECT p.platform_id
        FROM track_platform_ids p
        WHERE p.track_id = t.id AND p.platform = '{PRIMARY_PLATFORM.value}'
        ORDER BY p.id
        LIMIT 1
    ) AS primary_platform_id
"""

SCHEMA_STATEMENTS: tuple[str, ...] = (
    "ALTER TABLE tracks ADD COLUMN IF NOT EXISTS platforms_resolved_at timestamp",
    "CREATE UNIQUE INDEX IF NOT EXISTS track_platform_ids_track_platform_key"
    " ON track_platform_ids (track_id, platform)",
)


def build_scan_query(attribute: TrackAttribute) -> str:
    """Build the priority-ordered scan query for ``attribute``.

    Ties on popularity are broken by id so that consecutive scans see a
    stable order.
    """
    return (
        f"SELECT {_TRACK_COLUMNS}"
        " FROM tracks t LEFT JOIN albums al ON al.id = t.album_id"
        f" WHERE {MISSING_PREDICATES[attribute]}"
        " ORDER BY t.popularity DESC NULLS LAST, t.id ASC"
        " LIMIT %s OFFSET %s"
    )


def build_count_query(attribute: TrackAttribute) -> str:
    """Build the count query for tracks missing ``attribute``."""
    return (
        "SELECT COUNT(*) AS count FROM tracks t"
        f" WHERE {MISSING_PREDICATES[attribute]}"
    )


def row_to_track_ref(row: dict[str, Any]) -> TrackRef:
    """Convert a scan row into a TrackRef."""
    return TrackRef(
        id=row["id"],
        title=row["title"],
        popularity=row.get("popularity"),
        album_title=row.get("album_title"),
        artist_names=[name for name in row.get("artist_names") or [] if name],
        genres=[name for name in row.get("genres") or [] if name],
        primary_platform_id=row.get("primary_platform_id"),
    )


class PostgresTrackStore(TrackStore):
    """Track store backed by PostgreSQL.

    Args:
        config: Connection and pool settings.
        embedding_dimensions: Required length of every embedding vector.
        pool: Optional pre-built pool (mainly for tests).
    """

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        embedding_dimensions: int = 1536,
        pool: AsyncConnectionPool | None = None,
    ) -> None:
        self.config = config
        self.embedding_dimensions = embedding_dimensions
        self._pool = pool

    async def open(self) -> None:
        """Open the connection pool, retrying a bounded number of times.

        Raises:
            TrackStoreConnectionError: If the pool cannot be opened.
        """
        if self._pool is not None:
            return

        pool = AsyncConnectionPool(
            conninfo=self.config.conninfo,
            min_size=self.config.pool_min_size,
            max_size=self.config.pool_max_size,
            timeout=self.config.pool_timeout,
            kwargs={"row_factory": dict_row},
            open=False,
        )
        for attempt in range(1, self.config.connect_retries + 1):
            try:
                await pool.open(wait=True, timeout=self.config.pool_timeout)
            except psycopg.OperationalError as e:
                if attempt >= self.config.connect_retries:
                    await pool.close()
                    raise TrackStoreConnectionError(
                        f"Failed to connect to track store after {attempt} attempts: {e}"
                    ) from e
                logger.warning(
                    "Track store connection attempt %s/%s failed: %s",
                    attempt,
                    self.config.connect_retries,
                    e,
                )
                await asyncio.sleep(self.config.connect_retry_delay)
            else:
                self._pool = pool
                logger.info("Track store connection pool opened")
                return

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Track store connection pool closed")

    @property
    def pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise TrackStoreNotOpenError("Track store is not open. Call open() first.")
        return self._pool

    async def ensure_schema(self) -> None:
        """Create the column and unique index the pipeline relies on."""
        async with self.pool.connection() as conn:
            async with conn.transaction():
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
        logger.info("Track store schema verified")

    # ==================== Reads ====================

    async def scan_missing(
        self, attribute: TrackAttribute, *, limit: int, offset: int = 0
    ) -> list[TrackRef]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")
        rows = await self._fetch_all(build_scan_query(attribute), (limit, offset))
        return [row_to_track_ref(row) for row in rows]

    async def count(self, attribute: TrackAttribute) -> int:
        rows = await self._fetch_all(build_count_query(attribute), ())
        return int(rows[0]["count"]) if rows else 0

    async def coverage(self, attribute: TrackAttribute) -> CoverageStats:
        total_rows = await self._fetch_all("SELECT COUNT(*) AS count FROM tracks", ())
        total = int(total_rows[0]["count"]) if total_rows else 0
        missing = await self.count(attribute)
        return CoverageStats.from_counts(attribute, total, missing)

    # ==================== Writes ====================

    async def commit(
        self, track_id: int, attribute: TrackAttribute, value: Any
    ) -> CommitResult:
        match attribute:
            case TrackAttribute.EMBEDDING:
                return await self._commit_embedding(track_id, value)
            case TrackAttribute.RELEASE_DATE:
                return await self._commit_release_date(track_id, value)
            case TrackAttribute.PLATFORM_LINKS:
                return await self._commit_platform_links(track_id, value)
        raise ValueError(f"Unsupported attribute: {attribute}")

    async def _commit_embedding(
        self, track_id: int, vector: Sequence[float]
    ) -> CommitResult:
        if len(vector) != self.embedding_dimensions:
            raise ValueError(
                f"Embedding for track {track_id} has {len(vector)} dimensions, "
                f"expected {self.embedding_dimensions}"
            )
        rowcount = await self._execute(
            "UPDATE tracks SET embedding = %s, updated_at = now()"
            " WHERE id = %s AND embedding IS NULL",
            (Json([float(x) for x in vector]), track_id),
        )
        return CommitResult.WRITTEN if rowcount else CommitResult.SKIPPED

    async def _commit_release_date(self, track_id: int, value: date) -> CommitResult:
        rowcount = await self._execute(
            "UPDATE tracks SET release_date = %s, updated_at = now()"
            " WHERE id = %s AND release_date IS NULL",
            (value, track_id),
        )
        return CommitResult.WRITTEN if rowcount else CommitResult.SKIPPED

    async def _commit_platform_links(
        self, track_id: int, links: Sequence[PlatformLink]
    ) -> CommitResult:
        """Insert links with skip-if-present semantics and mark the attempt."""
        for link in links:
            if link.track_id != track_id:
                raise ValueError(
                    f"Platform link for track {link.track_id} committed under track {track_id}"
                )

        async def _write() -> int:
            changed = 0
            async with self.pool.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        for link in links:
                            await cur.execute(
                                "INSERT INTO track_platform_ids"
                                " (track_id, platform, platform_id, platform_url)"
                                " VALUES (%s, %s, %s, %s)"
                                " ON CONFLICT (track_id, platform) DO NOTHING",
                                (
                                    track_id,
                                    link.platform.value,
                                    link.platform_id,
                                    link.platform_url,
                                ),
                            )
                            changed += max(cur.rowcount, 0)
                        await cur.execute(
                            "UPDATE tracks SET platforms_resolved_at = now()"
                            " WHERE id = %s AND platforms_resolved_at IS NULL",
                            (track_id,),
                        )
                        changed += max(cur.rowcount, 0)
            return changed

        changed = await self._guard(_write)
        logger.debug("Changed %s platform rows for track %s", changed, track_id)
        return CommitResult.WRITTEN if changed else CommitResult.SKIPPED

    # ==================== Plumbing ====================

    async def _fetch_all(
        self, query: str, params: tuple[Any, ...]
    ) -> list[dict[str, Any]]:
        async def _query() -> list[dict[str, Any]]:
            async with self.pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()

        return await self._guard(retry_with_backoff, _query)

    async def _execute(self, query: str, params: tuple[Any, ...]) -> int:
        async def _command() -> int:
            async with self.pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return cur.rowcount

        return await self._guard(_command)

    async def _guard(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Run ``func`` translating driver errors into track store errors."""
        try:
            return await func(*args)
        except psycopg.OperationalError as e:
            raise TrackStoreConnectionError(str(e)) from e
        except psycopg.Error as e:
            raise TrackStoreError(str(e)) from e
