"""
Search popularity aggregation.

Every successful, non-empty search credits its top hit with one search in the
shared PopularityStore. The trending panel fed by this module is decorative,
so nothing here is ever allowed to raise into the browsing flow.
"""

import logging

from db.redis import PopularityStore
from implementation.classes.schemas import Movie, TrendingEntry

logger = logging.getLogger(__name__)

DEFAULT_TRENDING_LIMIT = 5


class PopularityAggregator:
    def __init__(self, store: PopularityStore) -> None:
        self._store = store

    async def record(self, query: str, top_result: Movie) -> bool:
        """
        Credit `top_result` with one search for `query`.

        Returns True if the store accepted the increment. Empty queries are
        browsing, not searching, and are never recorded.
        """
        if not query:
            return False
        try:
            await self._store.increment(top_result.id, top_result.title, top_result.poster_url)
        except Exception:
            logger.exception("Failed to record search %r for movie %d", query, top_result.id)
            return False
        logger.debug("Recorded search %r for movie %d (%s)", query, top_result.id, top_result.title)
        return True

    async def top_n(self, limit: int = DEFAULT_TRENDING_LIMIT) -> list[TrendingEntry]:
        """Most searched movies, or an empty list if the store can't be read."""
        try:
            return await self._store.top_n(limit)
        except Exception:
            logger.exception("Failed to load the top %d trending movies", limit)
            return []
