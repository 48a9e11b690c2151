"""
Market Analytics

Builds daily price and volume series for a market from indexed trades.

For each market:
1. Prefer the subgraph's pre-aggregated daily snapshots when present
2. Otherwise bucket raw trade executions by UTC day
3. Price each day as the running volume share of option A vs. the rest
4. Derive 24h price and volume changes from the last two days

Upstream failures never reach the caller: a synthetic series is returned
instead so charts can always render.
"""

import logging
import time
from dataclasses import replace

import numpy as np

from .config import AGGREGATE_CACHE_TTL, FALLBACK_DAYS
from .models import DailyBucket, MarketAnalytics, PriceHistoryPoint, TradeEvent, VolumePoint, utc_date
from .utils.cache import CachedFetcher, TTLCache

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
WEI = 10 ** 18

TIME_RANGES_MS = {
  "24h": DAY_MS,
  "7d": 7 * DAY_MS,
  "30d": 30 * DAY_MS,
}


class MarketAnalyticsService:
  """
  Per-market analytics with a five-minute snapshot cache.

  Sits on top of a CachedFetcher, so raw queries are cached (and
  rate-limit retried) separately from the aggregated snapshots.
  """

  def __init__(self, indexer, fetcher=None, cache=None, rng=None, clock=time.time):
    self.indexer = indexer
    self.fetcher = fetcher or CachedFetcher()
    self.cache = cache if cache is not None else TTLCache(default_ttl=AGGREGATE_CACHE_TTL)
    self.rng = rng if rng is not None else np.random.default_rng()
    self.clock = clock

  def get_market_analytics(self, market_id):
    """
    Analytics snapshot for a market.

    Never raises; falls back to synthetic data on failure or no trades.
    """
    market_id = str(market_id)

    cached = self.cache.get(market_id)
    if cached is not None:
      return cached

    try:
      analytics = self._load(market_id)
    except Exception as e:
      logger.error(f"Error fetching analytics for market {market_id}: {e}")
      return self.generate_fallback_analytics()

    if analytics is None:
      logger.info(f"No subgraph data found for market {market_id}, using fallback analytics")
      return self.generate_fallback_analytics()

    self.cache.set(market_id, analytics)
    return analytics

  def _load(self, market_id):
    try:
      daily = self.fetcher.cached_request(
        _daily_stats_key(market_id),
        lambda: self.indexer.fetch_daily_stats(market_id),
      )
    except Exception as e:
      logger.warning(f"Daily stats unavailable for market {market_id}: {e}")
      daily = []

    if daily:
      return self.process_daily_stats(daily)

    records = self.fetcher.cached_request(
      _trades_key(market_id),
      lambda: self.indexer.fetch_market_trades(market_id),
    )
    events = [e for e in (TradeEvent.from_record(r) for r in records) if e is not None]
    if not events:
      return None

    return self.process_events(events)

  def process_events(self, events):
    """Aggregate parsed trade events into an analytics snapshot."""
    buckets = bucket_by_day(events)

    price_history = build_price_history(buckets)
    volume_history = [
      VolumePoint(
        date=b.date,
        timestamp_ms=b.timestamp_ms,
        volume=b.total_volume,
        trades=b.trade_count,
      )
      for b in buckets
    ]

    return MarketAnalytics(
      price_history=price_history,
      volume_history=volume_history,
      total_volume=sum(e.amount for e in events),
      total_trades=len(events),
      price_change_24h=calculate_price_change(price_history),
      volume_change_24h=calculate_volume_change(volume_history),
      last_updated=self._now_iso(),
    )

  def process_daily_stats(self, rows):
    """
    Build a snapshot from `dailyMarketStats` rows (ascending by dayStart).

    Missing prices carry forward; a lone leg implies the other.
    """
    price_history = []
    volume_history = []
    total_volume = 0.0
    total_trades = 0
    last_a = None
    last_b = None

    for row in rows:
      ts = int(row["dayStart"]) * 1000
      date = utc_date(ts)

      if row.get("optionAPrice"):
        last_a = int(row["optionAPrice"]) / WEI
      if row.get("optionBPrice"):
        last_b = int(row["optionBPrice"]) / WEI

      if last_a is not None:
        option_a = _clamp(last_a, 0.0, 1.0)
      elif last_b is not None:
        option_a = _clamp(1 - last_b, 0.0, 1.0)
      else:
        option_a = 0.5
      option_b = _clamp(last_b, 0.0, 1.0) if last_b is not None else _clamp(1 - option_a, 0.0, 1.0)

      volume = float(row.get("totalVolume") or 0)
      trades = int(row.get("trades") or 0)
      total_volume += volume
      total_trades += trades

      price_history.append(PriceHistoryPoint(
        date=date,
        timestamp_ms=ts,
        option_a=round(option_a, 3),
        option_b=round(option_b, 3),
        volume=volume,
        trades=trades,
      ))
      volume_history.append(VolumePoint(date=date, timestamp_ms=ts, volume=volume, trades=trades))

    return MarketAnalytics(
      price_history=price_history,
      volume_history=volume_history,
      total_volume=total_volume,
      total_trades=total_trades,
      price_change_24h=calculate_price_change(price_history),
      volume_change_24h=calculate_volume_change(volume_history),
      last_updated=self._now_iso(),
    )

  def generate_fallback_analytics(self):
    """
    Synthetic eight-day series ending today.

    Option A follows a random walk of at most 5% a day within [0.05, 0.95].
    """
    now_ms = int(self.clock() * 1000)
    price_history = []
    volume_history = []
    price_a = 0.5

    for days_ago in range(FALLBACK_DAYS - 1, -1, -1):
      ts = now_ms - days_ago * DAY_MS
      date = utc_date(ts)

      price_a = _clamp(price_a + (self.rng.random() - 0.5) * 0.1, 0.05, 0.95)
      volume = int(self.rng.integers(100, 1100))
      trades = int(self.rng.integers(10, 60))

      price_history.append(PriceHistoryPoint(
        date=date,
        timestamp_ms=ts,
        option_a=round(price_a, 3),
        option_b=round(1 - price_a, 3),
        volume=volume,
        trades=trades,
      ))
      volume_history.append(VolumePoint(date=date, timestamp_ms=ts, volume=volume, trades=trades))

    return MarketAnalytics(
      price_history=price_history,
      volume_history=volume_history,
      total_volume=sum(p.volume for p in price_history),
      total_trades=sum(p.trades for p in price_history),
      price_change_24h=calculate_price_change(price_history),
      volume_change_24h=calculate_volume_change(volume_history),
      last_updated=self._now_iso(),
    )

  def clear_cache(self, market_id=None):
    """Force a refresh for one market, or all markets, including their cached queries."""
    if market_id is None:
      self.cache.clear()
      self.fetcher.clear_cache()
      return

    market_id = str(market_id)
    self.cache.delete(market_id)
    self.fetcher.clear_cache(_daily_stats_key(market_id))
    self.fetcher.clear_cache(_trades_key(market_id))

  def _now_iso(self):
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.clock()))


def _daily_stats_key(market_id):
  return f"dailyMarketStats:{market_id}"


def _trades_key(market_id):
  return f"tradeExecuteds:{market_id}"


def bucket_by_day(events):
  """
  Group events into UTC-day buckets, ascending by date.

  Option "0" counts toward option A; every other option toward B.
  """
  buckets = {}
  for event in sorted(events, key=lambda e: (e.timestamp_ms, e.block_number)):
    date = utc_date(event.timestamp_ms)
    bucket = buckets.get(date)
    if bucket is None:
      bucket = buckets[date] = DailyBucket(date=date, timestamp_ms=event.timestamp_ms)
    bucket.add(event)

  return sorted(buckets.values(), key=lambda b: b.timestamp_ms)


def build_price_history(buckets):
  """Price points from running option A/B volume across all days so far."""
  running_a = 0.0
  running_b = 0.0
  points = []

  for bucket in buckets:
    running_a += bucket.option_a_volume
    running_b += bucket.option_b_volume
    total = running_a + running_b

    option_a = running_a / total if total > 0 else 0.5
    option_b = running_b / total if total > 0 else 0.5

    points.append(PriceHistoryPoint(
      date=bucket.date,
      timestamp_ms=bucket.timestamp_ms,
      option_a=round(option_a, 3),
      option_b=round(option_b, 3),
      volume=bucket.total_volume,
      trades=bucket.trade_count,
    ))

  return points


def calculate_price_change(price_history):
  """Option A price change between the last two points."""
  if len(price_history) < 2:
    return 0

  latest = price_history[-1].option_a
  previous = price_history[-2].option_a
  latest = 0.5 if latest is None else latest
  previous = 0.5 if previous is None else previous

  return latest - previous


def calculate_volume_change(volume_history):
  """Relative volume change between the last two points."""
  if len(volume_history) < 2:
    return 0

  latest = volume_history[-1].volume
  previous = volume_history[-2].volume

  if previous == 0:
    return 1 if latest > 0 else 0
  return (latest - previous) / previous


def filter_time_range(analytics, time_range, now_ms=None):
  """
  Restrict a snapshot's series to a trailing window.

  Accepts "24h", "7d" or "30d"; anything else keeps all history.
  Totals and 24h changes are left as computed over the full series.
  """
  if now_ms is None:
    now_ms = int(time.time() * 1000)

  window = TIME_RANGES_MS.get(time_range)
  cutoff = now_ms - window if window is not None else 0

  return replace(
    analytics,
    price_history=[p for p in analytics.price_history if p.timestamp_ms >= cutoff],
    volume_history=[v for v in analytics.volume_history if v.timestamp_ms >= cutoff],
  )


def _clamp(value, low, high):
  return max(low, min(high, value))
