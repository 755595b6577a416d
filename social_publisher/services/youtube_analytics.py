# social_publisher/services/youtube_analytics.py
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60
MIN_CALL_INTERVAL_SECONDS = 60
MAX_ENTRIES = 500


@dataclass
class _Entry:
    data: dict
    stored_at: float


class YouTubeAnalyticsCache:
    """
    Per-process cache of channel analytics, keyed by channel id.
    Fresh entries are served for `ttl` seconds; independently, the API is hit at
    most once per `min_interval` per channel, serving whatever is cached meanwhile.
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        min_interval: float = MIN_CALL_INTERVAL_SECONDS,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.min_interval = min_interval
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._last_call: Dict[str, float] = {}

    def get(self, channel_id: str) -> Optional[dict]:
        entry = self._entries.get(channel_id)
        if entry and self.clock() - entry.stored_at < self.ttl:
            return entry.data
        return None

    def put(self, channel_id: str, data: dict) -> None:
        self._entries.pop(channel_id, None)
        self._entries[channel_id] = _Entry(data=data, stored_at=self.clock())
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._last_call.pop(evicted, None)
            logger.debug("youtube_analytics_cache_evicted", channel_id=evicted)

    def can_call(self, channel_id: str) -> bool:
        last = self._last_call.get(channel_id)
        return last is None or self.clock() - last >= self.min_interval

    async def fetch(self, channel_id: str, loader: Callable[[], Awaitable[dict]]) -> dict:
        """Return cached analytics for `channel_id`, calling `loader` only when allowed."""
        cached = self.get(channel_id)
        if cached is not None:
            logger.debug("youtube_analytics_cache_hit", channel_id=channel_id)
            return cached

        stale = self._entries.get(channel_id)
        if stale is not None and not self.can_call(channel_id):
            logger.info("youtube_analytics_rate_limited", channel_id=channel_id)
            return stale.data

        self._last_call[channel_id] = self.clock()
        data = await loader()
        self.put(channel_id, data)
        return data

    def clear(self, channel_id: Optional[str] = None) -> None:
        if channel_id is None:
            self._entries.clear()
            self._last_call.clear()
        else:
            self._entries.pop(channel_id, None)
            self._last_call.pop(channel_id, None)

    def clear_rate_limit(self, channel_id: str) -> None:
        self._last_call.pop(channel_id, None)

    def status(self, channel_id: str) -> dict:
        now = self.clock()
        entry = self._entries.get(channel_id)
        last = self._last_call.get(channel_id)
        return {
            "cached": entry is not None and now - entry.stored_at < self.ttl,
            "cache_age_seconds": int(now - entry.stored_at) if entry else None,
            "can_call": self.can_call(channel_id),
            "next_call_in_seconds": max(0, int(self.min_interval - (now - last))) if last is not None else 0,
        }


analytics_cache = YouTubeAnalyticsCache()
