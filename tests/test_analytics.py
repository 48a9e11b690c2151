"""Tests for market analytics."""

import pytest

from policast.analytics import (
  MarketAnalyticsService,
  bucket_by_day,
  build_price_history,
  calculate_price_change,
  calculate_volume_change,
  filter_time_range,
)
from policast.models import PriceHistoryPoint, TradeEvent, VolumePoint
from policast.utils.cache import CachedFetcher, TTLCache
from policast.utils.http import IndexerError, RateLimitedError

DAY1 = 1704067200
DAY = 24 * 60 * 60


def _trade(option_id, quantity, day, block, offset=0):
  return {
    "optionId": option_id,
    "price": "0",
    "quantity": str(quantity),
    "blockNumber": str(block),
    "blockTimestamp": str(DAY1 + day * DAY + offset),
  }


@pytest.fixture
def service(indexer, clock, rng, sleeps):
  fetcher = CachedFetcher(cache=TTLCache(default_ttl=30, clock=clock), sleep=sleeps.append)
  return MarketAnalyticsService(
    indexer,
    fetcher=fetcher,
    cache=TTLCache(default_ttl=300, clock=clock),
    rng=rng,
    clock=clock,
  )


def _assert_fallback_shape(analytics):
  assert len(analytics.price_history) == 8
  assert len(analytics.volume_history) == 8

  timestamps = [p.timestamp_ms for p in analytics.price_history]
  dates = [p.date for p in analytics.price_history]
  assert timestamps == sorted(timestamps)
  assert all(a < b for a, b in zip(dates, dates[1:]))

  for point in analytics.price_history:
    assert 0.05 <= point.option_a <= 0.95
    assert point.option_a + point.option_b == pytest.approx(1.0, abs=0.002)
    assert 100 <= point.volume < 1100
    assert 10 <= point.trades < 60

  assert analytics.total_volume == sum(p.volume for p in analytics.price_history)
  assert analytics.total_trades == sum(p.trades for p in analytics.price_history)


def test_running_price_split(service, indexer):
  """Option A alone on day one prices at 1.0; an equal B trade on day two evens it out."""
  indexer.trades = [_trade("0", 100, day=0, block=1), _trade("1", 100, day=1, block=2)]

  analytics = service.get_market_analytics("1")

  first, second = analytics.price_history
  assert (first.date, first.option_a, first.option_b) == ("2024-01-01", 1.0, 0.0)
  assert (second.date, second.option_a, second.option_b) == ("2024-01-02", 0.5, 0.5)
  assert analytics.total_volume == 200
  assert analytics.total_trades == 2
  assert analytics.price_change_24h == pytest.approx(-0.5)
  assert analytics.volume_change_24h == 0


def test_same_day_trades_share_a_bucket(service, indexer):
  indexer.trades = [
    _trade("0", 30, day=0, block=1, offset=60),
    _trade("1", 10, day=0, block=2, offset=120),
    _trade("2", 10, day=0, block=3, offset=180),
  ]

  analytics = service.get_market_analytics("1")

  assert len(analytics.price_history) == 1
  point = analytics.price_history[0]
  assert point.option_a == 0.6
  assert point.option_b == 0.4
  assert point.volume == 50
  assert point.trades == 3
  assert analytics.volume_history[0].volume == 50


def test_records_without_block_are_ignored(service, indexer):
  bad = _trade("0", 999, day=0, block=1)
  bad["blockNumber"] = None
  indexer.trades = [bad, _trade("1", 10, day=1, block=2)]

  analytics = service.get_market_analytics("1")

  assert analytics.total_volume == 10
  assert analytics.price_history[0].option_a == 0.0


def test_fallback_when_no_trades(service, indexer):
  indexer.trades = []

  _assert_fallback_shape(service.get_market_analytics("42"))


def test_fallback_when_only_malformed_trades(service, indexer):
  indexer.trades = [{"optionId": "0", "quantity": "10"}]

  _assert_fallback_shape(service.get_market_analytics("42"))


def test_fallback_on_upstream_error(service, indexer):
  indexer.error = IndexerError("subgraph down", status=503)

  _assert_fallback_shape(service.get_market_analytics("42"))


def test_fallback_after_rate_limit_exhausted(service, indexer, sleeps):
  indexer.error = RateLimitedError("429")

  _assert_fallback_shape(service.get_market_analytics("42"))
  assert indexer.count("trades") == 3


def test_fallback_ends_today(service, indexer, clock):
  analytics = service.get_market_analytics("42")

  assert analytics.price_history[-1].timestamp_ms == int(clock() * 1000)
  assert analytics.price_history[0].timestamp_ms == int(clock() * 1000) - 7 * DAY * 1000


def test_fallback_is_not_cached(service, indexer, clock):
  service.get_market_analytics("42")

  indexer.trades = [_trade("0", 10, day=0, block=1)]
  clock.advance(31)
  analytics = service.get_market_analytics("42")

  assert len(analytics.price_history) == 1


def test_snapshot_cached_for_five_minutes(service, indexer, clock):
  indexer.trades = [_trade("0", 10, day=0, block=1)]

  first = service.get_market_analytics("1")
  clock.advance(60)
  second = service.get_market_analytics("1")

  assert second is first
  assert indexer.count("trades") == 1

  clock.advance(300)
  third = service.get_market_analytics("1")

  assert third is not first
  assert indexer.count("trades") == 2


def test_clear_cache_forces_refresh(service, indexer):
  indexer.trades = [_trade("0", 10, day=0, block=1)]
  service.get_market_analytics("1")

  indexer.trades = [_trade("0", 10, day=0, block=1), _trade("1", 30, day=1, block=2)]
  service.clear_cache("1")
  analytics = service.get_market_analytics("1")

  assert len(analytics.price_history) == 2
  assert indexer.count("trades") == 2


def test_clear_cache_refreshes_daily_stats(service, indexer):
  indexer.daily = [{"dayStart": str(DAY1), "optionAPrice": "600000000000000000", "totalVolume": "10", "trades": "1"}]
  service.get_market_analytics("1")

  indexer.daily = indexer.daily + [
    {"dayStart": str(DAY1 + DAY), "optionAPrice": "700000000000000000", "totalVolume": "20", "trades": "2"},
  ]
  service.clear_cache(1)

  assert [p.option_a for p in service.get_market_analytics("1").price_history] == [0.6, 0.7]


def test_clear_cache_leaves_other_markets(service, indexer):
  indexer.trades = [_trade("0", 10, day=0, block=1)]
  service.get_market_analytics("1")
  service.get_market_analytics("2")

  service.clear_cache("1")
  service.get_market_analytics("2")

  assert indexer.calls.count(("trades", "2")) == 1


def test_clear_cache_all(service, indexer):
  indexer.trades = [_trade("0", 10, day=0, block=1)]
  service.get_market_analytics("1")
  service.get_market_analytics("2")

  service.clear_cache()

  assert len(service.cache) == 0
  assert len(service.fetcher.cache) == 0


def test_daily_stats_preferred(service, indexer):
  indexer.daily = [
    {"dayStart": str(DAY1), "optionAPrice": "600000000000000000", "optionBPrice": "400000000000000000",
     "totalVolume": "100", "trades": "4"},
    {"dayStart": str(DAY1 + DAY), "optionAPrice": None, "optionBPrice": None,
     "totalVolume": "50", "trades": "1"},
  ]
  indexer.trades = [_trade("0", 10, day=0, block=1)]

  analytics = service.get_market_analytics("1")

  assert [p.option_a for p in analytics.price_history] == [0.6, 0.6]
  assert [p.option_b for p in analytics.price_history] == [0.4, 0.4]
  assert analytics.total_volume == 150
  assert analytics.total_trades == 5
  assert analytics.volume_change_24h == pytest.approx(-0.5)
  assert indexer.count("trades") == 0


def test_daily_stats_infers_missing_leg(service, indexer):
  indexer.daily = [{"dayStart": str(DAY1), "optionBPrice": "300000000000000000", "totalVolume": "1", "trades": "1"}]

  point = service.get_market_analytics("1").price_history[0]

  assert point.option_a == 0.7
  assert point.option_b == 0.3


def test_daily_stats_error_falls_through_to_trades(indexer, clock, rng, sleeps):
  class NoDailyStats(type(indexer)):
    def fetch_daily_stats(self, market_id):
      raise IndexerError("Type `Query` has no field `dailyMarketStats`")

  flaky = NoDailyStats()
  flaky.trades = [_trade("0", 10, day=0, block=1)]
  service = MarketAnalyticsService(
    flaky,
    fetcher=CachedFetcher(cache=TTLCache(clock=clock), sleep=sleeps.append),
    rng=rng,
    clock=clock,
  )

  analytics = service.get_market_analytics("1")

  assert len(analytics.price_history) == 1
  assert analytics.price_history[0].option_a == 1.0


def test_bucket_by_day_sorts_out_of_order_events():
  events = [
    TradeEvent("1", 5.0, (DAY1 + DAY) * 1000, 2),
    TradeEvent("0", 5.0, DAY1 * 1000, 1),
  ]

  buckets = bucket_by_day(events)

  assert [b.date for b in buckets] == ["2024-01-01", "2024-01-02"]
  assert buckets[0].timestamp_ms == DAY1 * 1000


def test_build_price_history_zero_volume_defaults_to_even():
  buckets = bucket_by_day([TradeEvent("0", 0.0, DAY1 * 1000, 1)])

  point = build_price_history(buckets)[0]

  assert (point.option_a, point.option_b) == (0.5, 0.5)


def test_build_price_history_rounds_each_leg():
  buckets = bucket_by_day([
    TradeEvent("0", 1.0, DAY1 * 1000, 1),
    TradeEvent("1", 2.0, DAY1 * 1000, 2),
  ])

  point = build_price_history(buckets)[0]

  assert point.option_a == 0.333
  assert point.option_b == 0.667


def _points(*prices):
  return [PriceHistoryPoint("d", i, a, None if a is None else 1 - a, 0, 0) for i, a in enumerate(prices)]


def _volumes(*volumes):
  return [VolumePoint("d", i, v, 0) for i, v in enumerate(volumes)]


def test_calculate_price_change():
  assert calculate_price_change([]) == 0
  assert calculate_price_change(_points(0.4)) == 0
  assert calculate_price_change(_points(0.4, 0.7)) == pytest.approx(0.3)
  assert calculate_price_change(_points(None, 0.7)) == pytest.approx(0.2)


def test_calculate_volume_change():
  assert calculate_volume_change(_volumes(10)) == 0
  assert calculate_volume_change(_volumes(10, 15)) == pytest.approx(0.5)
  assert calculate_volume_change(_volumes(0, 15)) == 1
  assert calculate_volume_change(_volumes(0, 0)) == 0


def test_filter_time_range(service, indexer):
  indexer.trades = [
    _trade("0", 10, day=0, block=1),
    _trade("1", 10, day=5, block=2),
    _trade("0", 10, day=6, block=3, offset=3600),
  ]
  analytics = service.get_market_analytics("1")
  now_ms = (DAY1 + 7 * DAY) * 1000

  last_day = filter_time_range(analytics, "24h", now_ms)
  last_week = filter_time_range(analytics, "7d", now_ms)
  everything = filter_time_range(analytics, "all", now_ms)

  assert [p.date for p in last_day.price_history] == ["2024-01-07"]
  assert len(last_day.volume_history) == 1
  assert len(last_week.price_history) == 3
  assert len(everything.price_history) == 3
  assert last_day.total_volume == analytics.total_volume
  assert len(analytics.price_history) == 3


def test_to_dict_is_serialisable(service, indexer):
  indexer.trades = [_trade("0", 10, day=0, block=1)]

  data = service.get_market_analytics("1").to_dict()

  assert data["priceHistory"][0]["date"] == "2024-01-01"
  assert data["lastUpdated"] == "2024-01-08T00:00:00Z"
