"""
Configuration for Policast Analytics

Centralized config for the indexer client and the cache layers.
Edit these values (or set the environment variables) to tune behavior.
"""

import os

# === Indexer ===
# GraphQL endpoint of the deployed subgraph
SUBGRAPH_URL = (
  os.getenv("SUBGRAPH_URL")
  or os.getenv("NEXT_PUBLIC_SUBGRAPH_URL")
  or "https://api.studio.thegraph.com/query/121109/policast-v-2/v0.0.5"
)

# Per-request HTTP timeout in seconds
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))


# === Caching ===
# Lifetime of raw query results (studio free tier rate-limits aggressively)
QUERY_CACHE_TTL = float(os.getenv("QUERY_CACHE_TTL", "30"))

# Lifetime of aggregated analytics and portfolio snapshots
AGGREGATE_CACHE_TTL = float(os.getenv("AGGREGATE_CACHE_TTL", "300"))

# Total attempts for a rate-limited query (backoff 1s, 2s, 4s, ...)
RATE_LIMIT_RETRIES = int(os.getenv("RATE_LIMIT_RETRIES", "3"))


# === Analytics ===
# Number of daily points in the synthetic fallback series (today back 7 days)
FALLBACK_DAYS = 8

# Fixed-point scale of on-chain token amounts
TOKEN_DECIMALS = int(os.getenv("TOKEN_DECIMALS", "18"))
