"""Pytest configuration and shared fixtures."""

import pytest

from policast.deterministic_bootstrap import init_deterministic

# 2024-01-01T00:00:00Z
DAY1 = 1704067200
DAY = 24 * 60 * 60


@pytest.fixture
def rng():
  """Seeded Generator so synthetic series repeat across runs."""
  return init_deterministic(seed=42)


class FakeClock:
  """Manually advanced clock, in seconds."""

  def __init__(self, now=float(DAY1 + 7 * DAY)):
    self.now = now

  def __call__(self):
    return self.now

  def advance(self, seconds):
    self.now += seconds


@pytest.fixture
def clock():
  return FakeClock()


@pytest.fixture
def sleeps():
  """Records requested sleeps; pass `sleeps.append` as the sleep function."""
  return []


class FakeIndexer:
  """In-memory stand-in for SubgraphClient that records its calls."""

  def __init__(self):
    self.trades = []
    self.daily = []
    self.portfolios = {}
    self.user_trades = []
    self.positions = []
    self.error = None
    self.calls = []

  def _call(self, name, *args):
    self.calls.append((name,) + args)
    if self.error is not None:
      raise self.error

  def count(self, name):
    return sum(1 for call in self.calls if call[0] == name)

  def fetch_market_trades(self, market_id):
    self._call("trades", market_id)
    return self.trades

  def fetch_daily_stats(self, market_id):
    self._call("daily", market_id)
    return self.daily

  def fetch_user_portfolio(self, address):
    self._call("portfolio", address)
    return self.portfolios.get(address)

  def fetch_user_trades(self, address, first=50, skip=0):
    self._call("user_trades", address, first, skip)
    return self.user_trades

  def fetch_user_positions(self, address):
    self._call("positions", address)
    return self.positions


@pytest.fixture
def indexer():
  return FakeIndexer()


@pytest.fixture
def sample_trade_record():
  """Raw tradeExecuted record as returned by the subgraph."""
  return {
    "optionId": "0",
    "price": "500000000000000000",
    "quantity": "100",
    "blockNumber": "1200",
    "blockTimestamp": str(DAY1 + 3600),
  }
