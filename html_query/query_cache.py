"""
In-memory cache for parsed query descriptors.

Descriptors are a pure function of the query string, so once parsed they can
be shared by every evaluation in the process.  The cache is bounded and
non-evicting: when full it simply stops accepting new entries.  Descriptors
are small and the number of distinct queries a program uses is usually low,
so this keeps memory flat without LRU bookkeeping.

Concurrent readers are fine because entries are immutable.  Two threads
inserting the same key at once just parse the query twice.
"""

from typing import Optional

from .schemas import QueryDescriptor, CacheStats
from .logger import get_module_logger

logger = get_module_logger("query_cache")

DEFAULT_MAX_SIZE = 1000


class QueryCache:
    """
    Bounded descriptor cache keyed by the trimmed query string.

    Inject one into QueryParser to isolate tests or size it per process;
    otherwise the shared default from get_default_cache() is used.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        """
        Initialize descriptor cache.

        Args:
            max_size: Maximum number of entries. 0 disables caching.
        """
        self.max_size = max_size
        self._entries: dict[str, QueryDescriptor] = {}

    def get(self, query: str) -> Optional[QueryDescriptor]:
        """Return the cached descriptor for query, or None."""
        descriptor = self._entries.get(query)
        if descriptor is None:
            logger.debug(f"Cache miss for query: {query!r}")
        return descriptor

    def put(self, query: str, descriptor: QueryDescriptor) -> bool:
        """
        Store a descriptor.

        Returns:
            True if stored, False if the cache is already full
        """
        if query in self._entries:
            return True
        if len(self._entries) >= self.max_size:
            return False
        self._entries[query] = descriptor
        return True

    def __contains__(self, query: str) -> bool:
        return query in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Cleared {count} cached descriptors")
        return count

    def stats(self) -> CacheStats:
        return CacheStats(size=len(self._entries), max_size=self.max_size)


# Shared default cache, used when no cache is injected
_default_cache: Optional[QueryCache] = None


def get_default_cache() -> QueryCache:
    """Get or create the default cache instance."""
    global _default_cache
    if _default_cache is None:
        _default_cache = QueryCache()
    return _default_cache
