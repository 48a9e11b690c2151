"""
Data Models

Core data structures for market analytics and user portfolios:
- TradeEvent: Parsed trade execution from the indexer
- DailyBucket: Per-day volume accumulator
- PriceHistoryPoint / VolumePoint: Chart series points
- MarketAnalytics: Aggregated analytics snapshot for one market
- UserPortfolio, UserTrade, MarketPosition: Per-user portfolio data
- TopWinner: Leaderboard entry
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utc_date(timestamp_ms):
  """Calendar date (UTC) of a millisecond timestamp as YYYY-MM-DD."""
  return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


@dataclass(frozen=True)
class TradeEvent:
  """
  One executed trade as seen by the indexer.

  Ordered by block number and timestamp; immutable once observed.
  """
  option_id: str
  amount: float
  timestamp_ms: int
  block_number: int

  @classmethod
  def from_record(cls, data):
    """Parse a raw `tradeExecuted` record; None if it lacks a block or timestamp."""
    try:
      if not data or not data.get("blockNumber") or not data.get("blockTimestamp"):
        return None

      return cls(
        option_id=str(data.get("optionId", "")),
        amount=float(data.get("quantity") or 0),
        timestamp_ms=int(data["blockTimestamp"]) * 1000,
        block_number=int(data["blockNumber"]),
      )
    except (ValueError, TypeError, AttributeError) as e:
      logger.debug(f"Failed to parse trade event: {e}")
      return None


@dataclass
class DailyBucket:
  """Volume folded into one UTC calendar day."""
  date: str
  timestamp_ms: int       # First event folded into the bucket
  option_a_volume: float = 0.0
  option_b_volume: float = 0.0
  trade_count: int = 0

  @property
  def total_volume(self):
    return self.option_a_volume + self.option_b_volume

  def add(self, event):
    if event.option_id == "0":
      self.option_a_volume += event.amount
    else:
      self.option_b_volume += event.amount
    self.trade_count += 1


@dataclass
class PriceHistoryPoint:
  """Daily price point; prices are running volume shares in [0, 1]."""
  date: str
  timestamp_ms: int
  option_a: float
  option_b: float
  volume: float
  trades: int

  def to_dict(self):
    return {
      "date": self.date,
      "timestamp": self.timestamp_ms,
      "optionA": self.option_a,
      "optionB": self.option_b,
      "volume": self.volume,
      "trades": self.trades,
    }


@dataclass
class VolumePoint:
  """Daily traded volume."""
  date: str
  timestamp_ms: int
  volume: float
  trades: int

  def to_dict(self):
    return {
      "date": self.date,
      "timestamp": self.timestamp_ms,
      "volume": self.volume,
      "trades": self.trades,
    }


@dataclass
class MarketAnalytics:
  """
  Aggregated analytics for one market.

  Replaced wholesale on recomputation, never partially updated.
  """
  price_history: list
  volume_history: list
  total_volume: float
  total_trades: int
  price_change_24h: float
  volume_change_24h: float
  last_updated: str     # ISO-8601 UTC, e.g. 2024-01-08T00:00:00Z

  def to_dict(self):
    return {
      "priceHistory": [p.to_dict() for p in self.price_history],
      "volumeHistory": [v.to_dict() for v in self.volume_history],
      "totalVolume": self.total_volume,
      "totalTrades": self.total_trades,
      "priceChange24h": self.price_change_24h,
      "volumeChange24h": self.volume_change_24h,
      "lastUpdated": self.last_updated,
    }


@dataclass
class UserPortfolio:
  """Indexed portfolio totals; monetary fields are wei-scale integers."""
  total_invested: int
  total_winnings: int
  unrealized_pnl: int
  realized_pnl: int
  trade_count: int
  updated_at: int

  def to_dict(self):
    return {
      "totalInvested": str(self.total_invested),
      "totalWinnings": str(self.total_winnings),
      "unrealizedPnL": str(self.unrealized_pnl),
      "realizedPnL": str(self.realized_pnl),
      "tradeCount": self.trade_count,
      "updatedAt": self.updated_at,
    }

  @classmethod
  def from_dict(cls, data):
    return cls(
      total_invested=int(data.get("totalInvested") or 0),
      total_winnings=int(data.get("totalWinnings") or 0),
      unrealized_pnl=int(data.get("unrealizedPnL") or 0),
      realized_pnl=int(data.get("realizedPnL") or 0),
      trade_count=int(data.get("tradeCount") or 0),
      updated_at=int(data.get("updatedAt") or 0),
    )


@dataclass
class UserTrade:
  """A trade involving a user, with fields as returned by the indexer."""
  id: str
  market_id: str
  option_id: str
  buyer: str
  seller: str
  price: str
  quantity: str
  block_timestamp: str
  transaction_hash: str

  def to_dict(self):
    return {
      "id": self.id,
      "marketId": self.market_id,
      "optionId": self.option_id,
      "buyer": self.buyer,
      "seller": self.seller,
      "price": self.price,
      "quantity": self.quantity,
      "blockTimestamp": self.block_timestamp,
      "transactionHash": self.transaction_hash,
    }

  @classmethod
  def from_dict(cls, data):
    return cls(
      id=data.get("id", ""),
      market_id=data.get("marketId", ""),
      option_id=data.get("optionId", ""),
      buyer=data.get("buyer", ""),
      seller=data.get("seller", ""),
      price=data.get("price", "0"),
      quantity=data.get("quantity", "0"),
      block_timestamp=data.get("blockTimestamp", ""),
      transaction_hash=data.get("transactionHash", ""),
    )


@dataclass
class OptionPosition:
  """Holdings in one option of a market."""
  option_id: str
  total_shares: int
  total_cost: int       # Whole-token units after de-scaling
  avg_price: int
  trade_count: int

  def to_dict(self):
    return {
      "optionId": self.option_id,
      "totalShares": str(self.total_shares),
      "totalCost": str(self.total_cost),
      "avgPrice": str(self.avg_price),
      "tradeCount": self.trade_count,
    }


@dataclass
class MarketPosition:
  """All non-empty option positions a user holds in one market."""
  market_id: str
  positions: list = field(default_factory=list)

  def to_dict(self):
    return {
      "marketId": self.market_id,
      "positions": [p.to_dict() for p in self.positions],
    }


@dataclass
class TopWinner:
  """Leaderboard entry."""
  address: str
  total_winnings: int
  trade_count: int

  def to_dict(self):
    return {
      "address": self.address,
      "totalWinnings": str(self.total_winnings),
      "tradeCount": self.trade_count,
    }
