"""
Redis async connection pool and the trending popularity store.

Uses redis.asyncio with an explicit ConnectionPool. Everything stored here is
plain text (ids, titles, URLs, timestamps), so responses are decoded globally.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Protocol

import redis.asyncio as aioredis
from redis.asyncio.connection import ConnectionPool

from implementation.classes.schemas import TrendingEntry

logger = logging.getLogger(__name__)

_redis_pool: ConnectionPool | None = None
_redis_client: aioredis.Redis | None = None

ENV_PREFIX: str = os.getenv("REDIS_ENV", "unknown_env")


def get_redis_client() -> aioredis.Redis:
    """Return the shared async Redis client backed by a connection pool."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() at startup.")
    return _redis_client


def redis_key(*parts: str) -> str:
    """Build an environment-prefixed Redis key from one or more parts."""
    return f"{ENV_PREFIX}:{':'.join(parts)}"


async def init_redis(
    host: str = os.getenv("REDIS_HOST", "redis"),
    port: int = int(os.getenv("REDIS_PORT", "6379")),
    max_connections: int = 10,
) -> None:
    """Call once at startup, before any popularity reads or writes."""
    global _redis_pool, _redis_client
    _redis_pool = ConnectionPool(
        host=host,
        port=port,
        max_connections=max_connections,
        decode_responses=True,
    )
    _redis_client = aioredis.Redis(connection_pool=_redis_pool)
    await _redis_client.ping()  # Fail fast if Redis is unreachable at startup


async def close_redis() -> None:
    """Call at shutdown."""
    global _redis_pool, _redis_client
    if _redis_client:
        await _redis_client.aclose()
    if _redis_pool:
        await _redis_pool.aclose()
    _redis_client = None
    _redis_pool = None


async def check_redis() -> str:
    """Ping Redis and return 'ok' or an error message string."""
    try:
        client = get_redis_client()
        await client.ping()
        return "ok"
    except Exception as e:
        return str(e)


# ---------------------------------------------------------------------------
# Trending popularity
# ---------------------------------------------------------------------------

_POPULARITY_COUNTS_KEY = "popularity:counts"
_POPULARITY_ENTRY_KEY = "popularity:entry"


class PopularityStore(Protocol):
    async def increment(self, movie_id: int, title: str, poster_url: str | None) -> None: ...

    async def top_n(self, limit: int) -> list[TrendingEntry]: ...


class RedisPopularityStore:
    """
    PopularityStore backed by one sorted set of counts plus a Hash per movie.

    Layout:
        {env}:popularity:counts          ZSET  member=movie_id, score=search count
        {env}:popularity:entry:{id}      HASH  title, poster_url, updated_at

    ZINCRBY creates the member at 1 on first occurrence and is atomic, so
    concurrent increments for the same movie are never lost.
    """

    def __init__(self, client: aioredis.Redis | None = None) -> None:
        # None means "use the shared pool client", resolved lazily so the
        # store can be built before init_redis() runs.
        self._client = client

    @property
    def client(self) -> aioredis.Redis:
        return self._client or get_redis_client()

    @staticmethod
    def _entry_key(movie_id: int | str) -> str:
        return redis_key(_POPULARITY_ENTRY_KEY, str(movie_id))

    async def increment(self, movie_id: int, title: str, poster_url: str | None) -> None:
        """
        Add one search hit for `movie_id`, creating the entry on first occurrence.

        The count bump and the metadata refresh go out in one MULTI/EXEC
        pipeline so a reader never sees a count without its title.
        """
        updated_at = datetime.now(timezone.utc).isoformat()

        pipe = self.client.pipeline(transaction=True)
        pipe.zincrby(redis_key(_POPULARITY_COUNTS_KEY), 1, str(movie_id))
        pipe.hset(
            self._entry_key(movie_id),
            mapping={"title": title, "poster_url": poster_url or "", "updated_at": updated_at},
        )
        await pipe.execute()

    async def top_n(self, limit: int) -> list[TrendingEntry]:
        """
        Return up to `limit` entries by descending count, most recently updated first on ties.

        Members sharing the score of the last slot may sit on either side of
        the cut, so all of them are loaded before the final ordering.
        """
        if limit <= 0:
            return []

        client = self.client
        counts_key = redis_key(_POPULARITY_COUNTS_KEY)

        top: list[tuple[str, float]] = await client.zrange(counts_key, 0, limit - 1, desc=True, withscores=True)
        if not top:
            return []

        boundary = top[-1][1]
        tied: list[tuple[str, float]] = await client.zrangebyscore(counts_key, boundary, boundary, withscores=True)

        candidates: dict[str, float] = dict(top)
        candidates.update(tied)

        pipe = client.pipeline(transaction=False)
        for member in candidates:
            pipe.hgetall(self._entry_key(member))
        raw_entries: list[dict[str, str]] = await pipe.execute()

        entries: list[TrendingEntry] = []
        for (member, score), raw in zip(candidates.items(), raw_entries):
            if not raw:
                logger.warning("Popularity entry for movie %s is missing its metadata hash", member)
                continue
            entries.append(
                TrendingEntry(
                    movie_id=int(member),
                    title=raw.get("title", ""),
                    poster_url=raw.get("poster_url") or None,
                    search_count=int(score),
                    updated_at=datetime.fromisoformat(raw["updated_at"]),
                )
            )

        entries.sort(key=lambda entry: (entry.search_count, entry.updated_at), reverse=True)
        return entries[:limit]
