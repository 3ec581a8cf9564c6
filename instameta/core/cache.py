"""In-process TTL cache for extracted media records."""

import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from instameta.utils.config import CACHE_TTL
from instameta.utils.logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Key-value store whose entries expire after a fixed time-to-live.

    Expired entries are evicted lazily when read; there is no background
    sweep. Not safe to share across processes.
    """

    def __init__(self, ttl: float = CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache.

        Args:
            ttl: Default lifetime of an entry in seconds
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, float, V]] = {}

    def get(self, key: str) -> Optional[V]:
        """Return the live value for ``key``, evicting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, ttl, value = entry
        if self._clock() - stored_at < ttl:
            return value

        del self._entries[key]
        logger.debug(f"Cache entry expired: {key}")
        return None

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        self._entries[key] = (self._clock(), self.ttl if ttl is None else ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
