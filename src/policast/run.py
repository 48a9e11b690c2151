#!/usr/bin/env python3
"""
Policast Analytics

Market analytics and user portfolios from the Policast subgraph.

Commands:
  analytics   - Daily price/volume series for a market
  portfolio   - Portfolio totals for an address
  trades      - Recent trades for an address
  positions   - Open positions for an address
  leaderboard - Top winners by total winnings

Usage:
  python -m policast.run analytics <market_id> [24h|7d|30d|all]
  python -m policast.run portfolio <address>
  python -m policast.run trades <address> [first] [skip]
  python -m policast.run positions <address>
  python -m policast.run leaderboard [limit]
"""

import json
import logging
import sys

from .analytics import MarketAnalyticsService, filter_time_range
from .indexer import SubgraphClient
from .portfolio import PortfolioService

logging.basicConfig(
  level=logging.INFO,
  format="%(asctime)s - %(levelname)s - %(message)s"
)


def _print_json(data):
  print(json.dumps(data, indent=2))


def cmd_analytics(args):
  """Show analytics for a market."""
  if not args:
    raise ValueError("Market ID is required")

  service = MarketAnalyticsService(SubgraphClient())
  analytics = service.get_market_analytics(args[0])
  if len(args) > 1:
    analytics = filter_time_range(analytics, args[1])

  _print_json(analytics.to_dict())


def cmd_portfolio(args):
  """Show portfolio totals for an address."""
  if not args:
    raise ValueError("User address is required")

  portfolio = PortfolioService(SubgraphClient()).get_user_portfolio(args[0])
  if portfolio is None:
    print("No portfolio found")
    return

  _print_json(portfolio.to_dict())


def cmd_trades(args):
  """Show a page of trades for an address."""
  if not args:
    raise ValueError("User address is required")

  first = int(args[1]) if len(args) > 1 else 50
  skip = int(args[2]) if len(args) > 2 else 0

  trades = PortfolioService(SubgraphClient()).get_user_trades(args[0], first=first, skip=skip)
  _print_json([t.to_dict() for t in trades])


def cmd_positions(args):
  """Show open positions for an address."""
  if not args:
    raise ValueError("User address is required")

  positions = PortfolioService(SubgraphClient()).get_user_positions(args[0])
  _print_json([p.to_dict() for p in positions])


def cmd_leaderboard(args):
  """Show top winners."""
  limit = int(args[0]) if args else 100

  winners = SubgraphClient().fetch_top_winners(limit=limit)
  for rank, winner in enumerate(winners, 1):
    print(f"{rank:4d}. {winner.address}  winnings={winner.total_winnings}  trades={winner.trade_count}")


def cmd_help(args=None):
  """Show help message."""
  print(__doc__)


def main(argv=None):
  argv = sys.argv[1:] if argv is None else argv

  commands = {
    "analytics": cmd_analytics,
    "portfolio": cmd_portfolio,
    "trades": cmd_trades,
    "positions": cmd_positions,
    "leaderboard": cmd_leaderboard,
    "help": cmd_help,
    "--help": cmd_help,
    "-h": cmd_help,
  }

  if not argv:
    cmd_help()
    sys.exit(1)

  cmd = argv[0].lower()

  if cmd not in commands:
    print(f"Unknown command: {cmd}")
    cmd_help()
    sys.exit(1)

  try:
    commands[cmd](argv[1:])
  except KeyboardInterrupt:
    print("\nStopped.")
  except Exception as e:
    logging.error(f"Error: {e}")
    sys.exit(1)


if __name__ == "__main__":
  main()
