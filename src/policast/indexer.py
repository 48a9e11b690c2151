"""
Subgraph Client

Queries the Policast subgraph (indexed on-chain events) over GraphQL.
Transport failures surface as IndexerError / RateLimitedError.
"""

import logging

from .config import REQUEST_TIMEOUT, SUBGRAPH_URL
from .models import TopWinner
from .utils.http import IndexerError, make_session, post_graphql

logger = logging.getLogger(__name__)


GET_MARKET_ANALYTICS = """
  query GetMarketAnalytics($marketId: BigInt!) {
    tradeExecuteds(
      where: { marketId: $marketId }
      first: 1000
      orderBy: blockTimestamp
      orderDirection: asc
    ) {
      optionId
      price
      quantity
      blockNumber
      blockTimestamp
    }
  }
"""

GET_DAILY_MARKET_STATS = """
  query GetDailyMarketStats($marketId: BigInt!) {
    dailyMarketStats(
      where: { marketId: $marketId }
      orderBy: dayStart
      orderDirection: asc
      first: 1000
    ) {
      id
      marketId
      dayStart
      optionAPrice
      optionBPrice
      totalVolume
      trades
      updatedAt
    }
  }
"""

GET_USER_PORTFOLIO_DATA = """
  query GetUserPortfolioData($userAddress: ID!) {
    userPortfolio(id: $userAddress) {
      id
      totalInvested
      totalWinnings
      unrealizedPnL
      realizedPnL
      tradeCount
      updatedAt
    }
  }
"""

GET_USER_TRADES = """
  query GetUserTrades($userAddress: Bytes!, $first: Int!, $skip: Int!) {
    tradeExecuteds(
      where: { buyer: $userAddress }
      first: $first
      skip: $skip
      orderBy: blockTimestamp
      orderDirection: desc
    ) {
      id
      marketId
      optionId
      buyer
      seller
      price
      quantity
      blockTimestamp
      transactionHash
    }
  }
"""

GET_USER_POSITIONS = """
  query GetUserPositions($userAddress: Bytes!) {
    tradeExecuteds(
      where: { buyer: $userAddress }
      first: 1000
      orderBy: blockTimestamp
      orderDirection: asc
    ) {
      marketId
      optionId
      price
      quantity
    }
  }
"""

GET_TOP_WINNERS = """
  query TopPortfolios($first: Int!) {
    userPortfolios(
      first: $first
      orderBy: totalWinnings
      orderDirection: desc
      where: { totalWinnings_gt: "0" }
    ) {
      id
      totalWinnings
      tradeCount
    }
  }
"""


class SubgraphClient:
  """Client for the Policast subgraph."""

  def __init__(self, url=SUBGRAPH_URL, session=None, timeout=REQUEST_TIMEOUT):
    self.url = url
    self.timeout = timeout
    self.session = session or make_session()
    self.session.headers.update({"User-Agent": "policast-analytics/1.0"})

  def request(self, query, variables=None):
    """Run a query and return its `data` object."""
    return post_graphql(
      self.session,
      self.url,
      query,
      variables=variables,
      timeout=self.timeout,
    )

  def fetch_market_trades(self, market_id):
    """Raw trade executions for a market, oldest first."""
    _require(market_id, "Market ID is required")
    data = self.request(GET_MARKET_ANALYTICS, {"marketId": str(market_id)})
    return data.get("tradeExecuteds") or []

  def fetch_daily_stats(self, market_id):
    """Pre-aggregated daily snapshots for a market, oldest first."""
    _require(market_id, "Market ID is required")
    data = self.request(GET_DAILY_MARKET_STATS, {"marketId": str(market_id)})
    return data.get("dailyMarketStats") or []

  def fetch_user_portfolio(self, address):
    """Portfolio record for an address, or None if it never traded."""
    _require(address, "User address is required")
    data = self.request(GET_USER_PORTFOLIO_DATA, {"userAddress": address.lower()})
    return data.get("userPortfolio")

  def fetch_user_trades(self, address, first=50, skip=0):
    """A page of an address's trades, newest first."""
    _require(address, "User address is required")
    if first <= 0 or skip < 0:
      raise ValueError("Invalid pagination parameters")
    data = self.request(
      GET_USER_TRADES,
      {"userAddress": address.lower(), "first": first, "skip": skip},
    )
    return data.get("tradeExecuteds") or []

  def fetch_user_positions(self, address):
    """All trade executions for an address, for position aggregation."""
    _require(address, "User address is required")
    data = self.request(GET_USER_POSITIONS, {"userAddress": address.lower()})
    return data.get("tradeExecuteds") or []

  def fetch_top_winners(self, limit=100):
    """
    Top portfolios by total winnings.

    Returns an empty list on any error.
    """
    first = max(1, min(1000, limit))

    try:
      data = self.request(GET_TOP_WINNERS, {"first": first})
    except IndexerError as e:
      logger.error(f"Failed to fetch top winners: {e}")
      return []

    winners = []
    for item in data.get("userPortfolios") or []:
      try:
        winners.append(TopWinner(
          address=item["id"],
          total_winnings=int(item["totalWinnings"]),
          trade_count=int(item.get("tradeCount") or 0),
        ))
      except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"Failed to parse portfolio: {e}")

    logger.info(f"Fetched {len(winners)} top winners")
    return winners


def _require(value, message):
  if value is None or str(value) == "":
    raise ValueError(message)
