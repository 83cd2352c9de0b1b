"""Recalculate holdings and the portfolio summary from the stored ledger."""

from __future__ import annotations

import argparse
import asyncio

from wealthscope.api.database import Database
from wealthscope.api.repository import PortfolioRepository
from wealthscope.cache import build_market_data_cache
from wealthscope.config import get_settings
from wealthscope.core.logging import setup_logging
from wealthscope.service import PortfolioService


async def _run(action: str) -> None:
    settings = get_settings()
    database = Database(settings.database_url)
    await database.create_all()
    service = PortfolioService(PortfolioRepository(database), build_market_data_cache(settings))
    try:
        if action == "refresh-prices":
            count = await service.refresh_prices()
            print(f"Updated prices for {count} symbols")
            return
        result = await (service.backfill() if action == "backfill" else service.recalculate())
        summary = result.portfolio_summary
        print(
            f"Saved {len(result.holdings)} holdings; value {summary.portfolio_value:.2f} "
            f"{summary.currency}, gain/loss {summary.gain_loss:.2f}"
        )
    finally:
        await database.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild portfolio holdings and summary")
    parser.add_argument("action", nargs="?", default="recalculate", choices=["recalculate", "backfill", "refresh-prices"])
    args = parser.parse_args()
    setup_logging(get_settings().log_level)
    asyncio.run(_run(args.action))


if __name__ == "__main__":
    main()
