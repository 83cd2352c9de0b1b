"""Orchestrates aggregation passes over the persisted ledger."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping

from .api.repository import PortfolioRepository
from .cache import MarketDataCache
from .core.telemetry import aggregation_span
from .holdings import (
    calculate_portfolio,
    open_symbols,
    refresh_holding_prices,
    replay_transactions,
    year_bounds,
)
from .models import Dividend, Holding, PortfolioResult, PortfolioSummary, Transaction
from .parsing import parse_dividend_payload, parse_transaction_payload

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PortfolioService:
    """Fetch inputs, run the aggregation engine and persist its output.

    Passes within one process are serialized; separate processes writing to
    the same database can still race on the holdings replace.
    """

    def __init__(
        self,
        repository: PortfolioRepository,
        market_data: MarketDataCache,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.repository = repository
        self.market_data = market_data
        self._clock = clock
        self._lock = asyncio.Lock()

    async def calculate(self) -> PortfolioResult:
        """Run one aggregation pass without persisting anything."""

        with aggregation_span("calculate") as span:
            now = self._clock()
            fx_rate = await self.market_data.get_fx_rate()
            transactions = await self.repository.list_transactions()
            start, end = year_bounds(now)
            dividends = await self.repository.list_dividends_in_range(start, end)
            logger.info(
                "Calculating portfolio from %d transactions and %d dividends (USD/CAD %s)",
                len(transactions),
                len(dividends),
                fx_rate,
            )

            positions = replay_transactions(transactions, fx_rate)
            prices = await self.market_data.get_prices(open_symbols(positions))
            result = calculate_portfolio(transactions, dividends, prices, fx_rate, now=now, positions=positions)
            span.set_attribute("wealthscope.holdings", len(result.holdings))
            span.set_attribute("wealthscope.fx_rate", fx_rate)
        return result

    async def recalculate(self) -> PortfolioResult:
        async with self._lock:
            result = await self.calculate()
            await self.repository.replace_holdings(result.holdings)
            await self.repository.put_summary(result.portfolio_summary)
        logger.info("Portfolio summary and holdings recalculated")
        return result

    async def recalculate_holdings(self) -> List[Holding]:
        async with self._lock:
            result = await self.calculate()
            await self.repository.replace_holdings(result.holdings)
        return result.holdings

    async def calculate_summary(self) -> PortfolioSummary:
        async with self._lock:
            result = await self.calculate()
            await self.repository.put_summary(result.portfolio_summary)
        return result.portfolio_summary

    async def get_or_calculate_summary(self) -> PortfolioSummary:
        summary = await self.repository.get_summary()
        if summary is not None:
            return summary
        logger.info("No stored portfolio summary, calculating a new one")
        return await self.calculate_summary()

    async def backfill(self) -> PortfolioResult:
        """Rebuild holdings and the summary from the full historical ledger."""

        logger.info("Starting historical data backfill")
        result = await self.recalculate()
        logger.info("Historical data backfill completed")
        return result

    async def refresh_prices(self) -> int:
        """Re-price stored holdings without replaying the ledger.

        Returns the number of symbols that were priced.
        """

        async with self._lock:
            holdings = await self.repository.list_holdings()
            if not holdings:
                return 0
            with aggregation_span("refresh_prices"):
                symbols = [holding.symbol for holding in holdings]
                prices = await self.market_data.get_prices(symbols)
                fx_rate = await self.market_data.get_fx_rate()
                updated = refresh_holding_prices(holdings, prices, fx_rate, now=self._clock())
                await self.repository.update_holding_prices(updated)
        logger.info("Updated prices for %d of %d holdings", len(updated), len(symbols))
        return len(symbols)

    async def ingest_transaction(self, payload: Mapping[str, Any]) -> Transaction:
        transaction = parse_transaction_payload(payload, self._clock())
        stored = await self.repository.append_transaction(transaction)
        await self.recalculate()
        return stored

    async def ingest_dividend(self, payload: Mapping[str, Any]) -> Dividend:
        dividend = parse_dividend_payload(payload, self._clock())
        stored = await self.repository.append_dividend(dividend)
        await self.recalculate()
        return stored

    async def exchange_rate(self) -> float:
        return await self.market_data.get_fx_rate()

    def now(self) -> datetime:
        return self._clock()


__all__ = ["PortfolioService"]
