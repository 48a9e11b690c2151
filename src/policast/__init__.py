"""Market analytics and portfolio aggregation over the Policast subgraph."""

from .analytics import MarketAnalyticsService, filter_time_range
from .indexer import SubgraphClient
from .portfolio import PortfolioService

__all__ = [
  "MarketAnalyticsService",
  "filter_time_range",
  "SubgraphClient",
  "PortfolioService",
]
