"""Utilities for HTTP transport and query caching."""

from .cache import CachedFetcher, TTLCache
from .http import IndexerError, RateLimitedError, is_rate_limited, make_session, post_graphql

__all__ = [
  "CachedFetcher",
  "TTLCache",
  "IndexerError",
  "RateLimitedError",
  "is_rate_limited",
  "make_session",
  "post_graphql",
]
