"""Domain models used by the WealthScope aggregation engine."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .fx import REPORTING_CURRENCY


class TransactionType(str, enum.Enum):
    BUY = "Buy"
    SELL = "Sell"


@dataclass(frozen=True)
class Transaction:
    """A normalized buy or sell ledger entry."""

    symbol: str
    type: TransactionType
    shares: float
    average_price: float
    currency: str
    transaction_date: datetime
    total_cost: Optional[float] = None
    total_value: Optional[float] = None
    account: Optional[str] = None
    time: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class Dividend:
    """A dividend payment as reported by the brokerage."""

    symbol: str
    amount: float
    currency: str
    payment_date: datetime
    account: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Holding:
    """Derived snapshot of a single open position.

    Fields suffixed with ``_cad`` are expressed in the reporting currency; the
    rest are in the position's native ``currency``.
    """

    symbol: str
    quantity: float
    avg_buy_price: float
    avg_buy_price_cad: float
    current_price: float
    current_price_cad: float
    total_invested: float
    total_invested_cad: float
    market_value: float
    market_value_cad: float
    unrealized_gain_loss: float
    unrealized_gain_loss_cad: float
    unrealized_gain_loss_percentage: float
    currency: str
    last_updated: datetime


@dataclass
class PortfolioSummary:
    """Portfolio-wide totals, always in the reporting currency."""

    total_invested: float
    total_dividends_ytd: float
    portfolio_value: float
    gain_loss: float
    last_updated: datetime
    currency: str = REPORTING_CURRENCY


@dataclass
class PortfolioResult:
    """Output of one aggregation pass."""

    holdings: List[Holding]
    portfolio_summary: PortfolioSummary
    calculated_at: datetime
    fx_rate: float = field(default=1.0)
