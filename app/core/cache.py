import logging

from cachetools import TTLCache

from app.core.config import settings

logger = logging.getLogger(__name__)


class ResultsCache:
    """Short-lived cache for the scoreboard.

    Serving a slightly stale scoreboard to polling clients is fine; the
    cache is dropped on every review so admins see their own decisions.
    A value computed across an invalidation is never stored.
    """

    KEY = "results"

    def __init__(self, ttl: float):
        self.ttl = ttl
        self._cache = TTLCache(maxsize=1, ttl=ttl) if ttl > 0 else None
        self._generation = 0

    async def get_or_compute(self, compute):
        if self._cache is None:
            return await compute()
        cached = self._cache.get(self.KEY)
        if cached is not None:
            return cached
        generation = self._generation
        value = await compute()
        if generation == self._generation:
            self._cache[self.KEY] = value
        return value

    def invalidate(self):
        self._generation += 1
        if self._cache is not None:
            self._cache.clear()
            logger.debug("Results cache invalidated")


results_cache = ResultsCache(settings.RESULTS_CACHE_TTL)
