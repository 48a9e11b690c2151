"""
Portfolio Service

Per-user portfolio totals, trade history and open positions from the
subgraph. Addresses are case-insensitive and always looked up lowercased.

Failures are logged and reported as None or an empty list.
"""

import logging

from .config import AGGREGATE_CACHE_TTL, TOKEN_DECIMALS
from .models import MarketPosition, OptionPosition, UserPortfolio, UserTrade
from .utils.cache import CachedFetcher, TTLCache

logger = logging.getLogger(__name__)

# Cached in place of a portfolio for addresses that never traded
NO_PORTFOLIO = object()


class PortfolioService:
  """User portfolios with a five-minute snapshot cache."""

  def __init__(self, indexer, fetcher=None, cache=None, decimals=TOKEN_DECIMALS):
    self.indexer = indexer
    self.fetcher = fetcher or CachedFetcher()
    self.cache = cache if cache is not None else TTLCache(default_ttl=AGGREGATE_CACHE_TTL)
    self.scale = 10 ** decimals

  def get_user_portfolio(self, address):
    """Portfolio totals for an address, or None if it never traded or the query failed."""
    address = address.lower()

    cached = self.cache.get(address)
    if cached is NO_PORTFOLIO:
      return None
    if cached is not None:
      return cached

    try:
      record = self.fetcher.cached_request(
        _portfolio_key(address),
        lambda: self.indexer.fetch_user_portfolio(address),
      )
      if not record:
        self.cache.set(address, NO_PORTFOLIO)
        return None

      portfolio = UserPortfolio.from_dict(record)
    except Exception as e:
      logger.error(f"Error fetching user portfolio from subgraph: {e}")
      return None

    self.cache.set(address, portfolio)
    return portfolio

  def get_user_trades(self, address, first=50, skip=0):
    """A page of the address's trades, newest first; uncached."""
    address = address.lower()

    try:
      records = self.indexer.fetch_user_trades(address, first=first, skip=skip)
      return [UserTrade.from_dict(r) for r in records]
    except Exception as e:
      logger.error(f"Error fetching user trades from subgraph: {e}")
      return []

  def get_user_positions(self, address):
    """Open positions per market, built from the address's trade executions."""
    address = address.lower()

    try:
      records = self.fetcher.cached_request(
        _positions_key(address),
        lambda: self.indexer.fetch_user_positions(address),
      )
    except Exception as e:
      logger.error(f"Error fetching user positions from subgraph: {e}")
      return []

    return aggregate_positions(records, self.scale)

  def clear_cache(self, address=None):
    """Drop cached portfolio data and queries for one address, or everyone."""
    if address is None:
      self.cache.clear()
      self.fetcher.clear_cache()
      return

    address = address.lower()
    self.cache.delete(address)
    self.fetcher.clear_cache(_portfolio_key(address))
    self.fetcher.clear_cache(_positions_key(address))


def _portfolio_key(address):
  return f"userPortfolio:{address}"


def _positions_key(address):
  return f"userPositions:{address}"


def aggregate_positions(records, scale=10 ** TOKEN_DECIMALS):
  """
  Sum trades into per-market, per-option positions.

  Cost is quantity * price de-scaled from fixed point; average price is
  total cost over total shares. Options without shares are dropped, as
  are markets left with no options.
  """
  markets = {}

  for record in records:
    try:
      market_id = str(record["marketId"])
      option_id = str(record["optionId"])
      quantity = int(record["quantity"])
      price = int(record["price"])
    except (KeyError, TypeError, ValueError) as e:
      logger.debug(f"Skipping malformed trade: {e}")
      continue

    options = markets.setdefault(market_id, {})
    totals = options.setdefault(option_id, {"shares": 0, "cost": 0, "trades": 0})
    totals["shares"] += quantity
    totals["cost"] += _div(quantity * price, scale)
    totals["trades"] += 1

  positions = []
  for market_id, options in markets.items():
    held = [
      OptionPosition(
        option_id=option_id,
        total_shares=totals["shares"],
        total_cost=totals["cost"],
        avg_price=_div(totals["cost"], totals["shares"]),
        trade_count=totals["trades"],
      )
      for option_id, totals in options.items()
      if totals["shares"] > 0
    ]
    if held:
      positions.append(MarketPosition(market_id=market_id, positions=held))

  return positions


def _div(numerator, denominator):
  """Integer division truncating toward zero."""
  quotient = abs(numerator) // abs(denominator)
  return quotient if (numerator >= 0) == (denominator > 0) else -quotient
