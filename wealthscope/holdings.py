"""Replay the transaction ledger into holdings and a portfolio summary."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .fx import REPORTING_CURRENCY, convert_to_reporting_currency
from .models import (
    Dividend,
    Holding,
    PortfolioResult,
    PortfolioSummary,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)


@dataclass
class PositionState:
    """Running cost-basis state for one symbol during replay."""

    symbol: str
    currency: str
    quantity: float = 0.0
    total_cost: float = 0.0
    total_cost_reporting: float = 0.0
    avg_buy_price: float = 0.0
    avg_buy_price_reporting: float = 0.0

    def buy(self, shares: float, amount: float, amount_reporting: float) -> None:
        self.total_cost += amount
        self.total_cost_reporting += amount_reporting
        self.quantity += shares
        if self.quantity > 0:
            self.avg_buy_price = self.total_cost / self.quantity
            self.avg_buy_price_reporting = self.total_cost_reporting / self.quantity

    def sell(self, shares: float) -> None:
        old_quantity = self.quantity
        self.quantity = max(0.0, self.quantity - shares)
        if self.quantity == 0:
            # Full liquidation drops any float residue left in the cost basis
            self.total_cost = 0.0
            self.total_cost_reporting = 0.0
            self.avg_buy_price = 0.0
            self.avg_buy_price_reporting = 0.0
            return
        sell_ratio = shares / old_quantity
        self.total_cost -= self.total_cost * sell_ratio
        self.total_cost_reporting -= self.total_cost_reporting * sell_ratio


def transaction_amount(transaction: Transaction) -> float:
    """Gross amount of a transaction in its own currency."""

    if transaction.total_cost is not None:
        return transaction.total_cost
    return transaction.shares * transaction.average_price


def replay_transactions(
    transactions: Iterable[Transaction], fx_rate: float
) -> Dict[str, PositionState]:
    """Fold the ordered ledger into per-symbol positions.

    The returned mapping preserves the order in which symbols first appear.
    """

    positions: Dict[str, PositionState] = {}
    buys = sells = 0
    for tx in transactions:
        position = positions.get(tx.symbol)
        if position is None:
            position = PositionState(symbol=tx.symbol, currency=tx.currency or REPORTING_CURRENCY)
            positions[tx.symbol] = position
            logger.debug("New symbol %s (currency %s)", tx.symbol, position.currency)

        amount = transaction_amount(tx)
        amount_reporting = convert_to_reporting_currency(amount, tx.currency, fx_rate)

        if tx.type is TransactionType.BUY:
            buys += 1
            position.buy(tx.shares, amount, amount_reporting)
        elif tx.type is TransactionType.SELL:
            sells += 1
            position.sell(tx.shares)

    logger.info("Replayed %d transactions (%d buys, %d sells)", buys + sells, buys, sells)
    return positions


def compute_total_invested(transactions: Iterable[Transaction], fx_rate: float) -> float:
    """Signed sum of converted amounts: buys add, sells subtract.

    Deliberately independent of :func:`replay_transactions`; it is neither
    floored at zero nor reset on full liquidation.
    """

    total = 0.0
    for tx in transactions:
        amount = convert_to_reporting_currency(transaction_amount(tx), tx.currency, fx_rate)
        if tx.type is TransactionType.BUY:
            total += amount
        elif tx.type is TransactionType.SELL:
            total -= amount
    return total


def year_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Return the inclusive ``[Jan 1, Dec 31 23:59:59]`` window for ``now``'s year."""

    start = now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    end = now.replace(month=12, day=31, hour=23, minute=59, second=59, microsecond=0)
    return start, end


def sum_dividends_ytd(dividends: Iterable[Dividend], fx_rate: float, *, now: datetime) -> float:
    start, end = year_bounds(now)
    total = 0.0
    for dividend in dividends:
        if start <= dividend.payment_date <= end:
            total += convert_to_reporting_currency(dividend.amount, dividend.currency, fx_rate)
    return total


def open_symbols(positions: Mapping[str, PositionState]) -> List[str]:
    """Symbols that survive the quantity filter."""

    return [symbol for symbol, position in positions.items() if position.quantity > 0]


def build_holdings(
    positions: Mapping[str, PositionState],
    prices: Mapping[str, float],
    fx_rate: float,
    *,
    now: datetime,
) -> List[Holding]:
    holdings: List[Holding] = []
    for symbol, position in positions.items():
        if position.quantity <= 0:
            logger.debug("Skipping %s - zero quantity", symbol)
            continue

        # No usable live price means no unrealized gain, not a zero valuation
        current_price = prices.get(symbol) or position.avg_buy_price
        current_price_cad = convert_to_reporting_currency(current_price, position.currency, fx_rate)
        market_value = position.quantity * current_price
        market_value_cad = position.quantity * current_price_cad
        gain_loss = market_value - position.total_cost
        gain_loss_cad = market_value_cad - position.total_cost_reporting
        if position.total_cost > 0:
            gain_loss_pct = gain_loss / position.total_cost * 100
        else:
            gain_loss_pct = 0.0

        holdings.append(
            Holding(
                symbol=symbol,
                quantity=position.quantity,
                avg_buy_price=position.avg_buy_price,
                avg_buy_price_cad=position.avg_buy_price_reporting,
                current_price=current_price,
                current_price_cad=current_price_cad,
                total_invested=position.total_cost,
                total_invested_cad=position.total_cost_reporting,
                market_value=market_value,
                market_value_cad=market_value_cad,
                unrealized_gain_loss=gain_loss,
                unrealized_gain_loss_cad=gain_loss_cad,
                unrealized_gain_loss_percentage=gain_loss_pct,
                currency=position.currency,
                last_updated=now,
            )
        )
    return holdings


def calculate_portfolio(
    transactions: Sequence[Transaction],
    dividends: Sequence[Dividend],
    prices: Mapping[str, float],
    fx_rate: float,
    *,
    now: datetime,
    positions: Optional[Mapping[str, PositionState]] = None,
) -> PortfolioResult:
    """Compute holdings and the portfolio summary from a ledger snapshot.

    ``transactions`` must be ordered ascending by ``transaction_date``.
    ``positions`` may carry the result of replaying that same ledger at
    ``fx_rate`` so callers that already replayed it do not pay for it twice.
    """

    if positions is None:
        positions = replay_transactions(transactions, fx_rate)
    total_invested = compute_total_invested(transactions, fx_rate)
    total_dividends_ytd = sum_dividends_ytd(dividends, fx_rate, now=now)
    holdings = build_holdings(positions, prices, fx_rate, now=now)

    portfolio_value = sum(h.market_value_cad for h in holdings)
    gain_loss = portfolio_value + total_dividends_ytd - total_invested

    logger.info(
        "Portfolio calculated: invested=%.2f dividends_ytd=%.2f value=%.2f gain_loss=%.2f holdings=%d",
        total_invested,
        total_dividends_ytd,
        portfolio_value,
        gain_loss,
        len(holdings),
    )

    summary = PortfolioSummary(
        total_invested=total_invested,
        total_dividends_ytd=total_dividends_ytd,
        portfolio_value=portfolio_value,
        gain_loss=gain_loss,
        last_updated=now,
        currency=REPORTING_CURRENCY,
    )
    return PortfolioResult(holdings=holdings, portfolio_summary=summary, calculated_at=now, fx_rate=fx_rate)


def refresh_holding_prices(
    holdings: Iterable[Holding],
    prices: Mapping[str, float],
    fx_rate: float,
    *,
    now: datetime,
) -> List[Holding]:
    """Apply new live prices to stored holdings.

    Only price-derived fields change; holdings without a positive new price are
    left out of the result.
    """

    updated: List[Holding] = []
    for holding in holdings:
        price = prices.get(holding.symbol)
        if not price or price <= 0:
            continue
        price_cad = convert_to_reporting_currency(price, holding.currency, fx_rate)
        updated.append(
            replace(
                holding,
                current_price=price,
                current_price_cad=price_cad,
                market_value=holding.quantity * price,
                market_value_cad=holding.quantity * price_cad,
                last_updated=now,
            )
        )
    return updated


__all__ = [
    "PositionState",
    "build_holdings",
    "calculate_portfolio",
    "compute_total_invested",
    "open_symbols",
    "refresh_holding_prices",
    "replay_transactions",
    "sum_dividends_ytd",
    "transaction_amount",
    "year_bounds",
]
