"""
Query Cache

In-memory TTL cache for indexer queries and a fetch wrapper that
checks the cache, populates it, and backs off on rate limiting.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from ..config import QUERY_CACHE_TTL, RATE_LIMIT_RETRIES
from .http import is_rate_limited

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class CacheEntry:
  """Cached value and the time it was stored."""

  data: Any
  timestamp: float


class TTLCache:
  """
  Key/value store with per-read expiration.

  Entries older than the TTL are treated as absent and removed when read.
  There is no capacity bound; the cache lives as long as its owner.
  """

  def __init__(self, default_ttl=QUERY_CACHE_TTL, clock=time.monotonic):
    self.default_ttl = default_ttl
    self.clock = clock
    self._entries = {}

  def get(self, key, ttl=None, default=None):
    """Return the fresh value for key, or default if absent or expired."""
    entry = self._entries.get(key)
    if entry is None:
      return default

    max_age = ttl if ttl is not None else self.default_ttl
    if self.clock() - entry.timestamp > max_age:
      del self._entries[key]
      return default

    return entry.data

  def set(self, key, value):
    self._entries[key] = CacheEntry(data=value, timestamp=self.clock())

  def delete(self, key):
    self._entries.pop(key, None)

  def clear(self):
    self._entries.clear()

  def stats(self):
    """Size and keys currently held, including not-yet-evicted stale ones."""
    return {"size": len(self._entries), "keys": list(self._entries)}

  def __contains__(self, key):
    return self.get(key, default=_MISSING) is not _MISSING

  def __len__(self):
    return len(self._entries)


class CachedFetcher:
  """
  Wraps indexer fetches with caching and rate-limit backoff.

  Concurrent callers missing the same key each fetch independently.
  """

  def __init__(self, cache=None, retries=RATE_LIMIT_RETRIES, sleep=time.sleep):
    self.cache = cache if cache is not None else TTLCache()
    self.retries = retries
    self.sleep = sleep

  def cached_request(self, key, fetcher, ttl=None, retries=None):
    """
    Return the cached value for key, or fetch and cache it.

    Args:
      key: Cache key, usually the query name plus its variables.
      fetcher: Zero-argument callable performing the request.
      ttl: Freshness override for this lookup.
      retries: Total attempts when rate limited.

    Returns:
      The cached or freshly fetched value.

    Raises:
      Whatever the fetcher raised, once it is not a rate limit or the
      attempts are exhausted.
    """
    cached = self.cache.get(key, ttl=ttl, default=_MISSING)
    if cached is not _MISSING:
      logger.info(f"Cache hit for key: {key}")
      return cached

    logger.info(f"Cache miss for key: {key}, fetching...")

    attempts = retries if retries is not None else self.retries
    for attempt in range(attempts):
      try:
        data = fetcher()
      except Exception as e:
        if not is_rate_limited(e) or attempt >= attempts - 1:
          raise
        delay = self._backoff(attempt, e)
        logger.warning(f"Rate limited on {key}, retrying in {delay}s (attempt {attempt + 1}/{attempts})")
        self.sleep(delay)
        continue

      self.cache.set(key, data)
      return data

    raise ValueError(f"retries must be at least 1, got {attempts}")

  @staticmethod
  def _backoff(attempt, error):
    delay = 2 ** attempt
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None and retry_after > delay:
      return retry_after
    return delay

  def clear_cache(self, key=None):
    """Drop one key, or everything when key is None."""
    if key is None:
      self.cache.clear()
    else:
      self.cache.delete(key)
