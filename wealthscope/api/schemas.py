"""Pydantic schemas for API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionOut(_CamelModel):
    id: Optional[int] = None
    symbol: str
    type: str
    shares: float
    average_price: float
    total_cost: Optional[float] = None
    total_value: Optional[float] = None
    currency: str
    account: Optional[str] = None
    time: Optional[str] = None
    transaction_date: datetime


class DividendOut(_CamelModel):
    id: Optional[int] = None
    symbol: str
    amount: float
    currency: str
    account: Optional[str] = None
    payment_date: datetime


class HoldingOut(_CamelModel):
    symbol: str
    quantity: float
    avg_buy_price: float
    avg_buy_price_cad: float = Field(alias="avgBuyPriceCAD")
    current_price: float
    current_price_cad: float = Field(alias="currentPriceCAD")
    total_invested: float
    total_invested_cad: float = Field(alias="totalInvestedCAD")
    market_value: float
    market_value_cad: float = Field(alias="marketValueCAD")
    unrealized_gain_loss: float
    unrealized_gain_loss_cad: float = Field(alias="unrealizedGainLossCAD")
    unrealized_gain_loss_percentage: float
    currency: str
    last_updated: datetime


class PortfolioSummaryOut(_CamelModel):
    total_invested: float
    total_dividends_ytd: float = Field(alias="totalDividendsYTD")
    portfolio_value: float
    gain_loss: float
    last_updated: datetime
    currency: str


class ExchangeRateOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rate: float
    from_currency: str = Field(alias="from")
    to_currency: str = Field(alias="to")
    timestamp: datetime


class MessageResponse(BaseModel):
    message: str
    count: Optional[int] = None


class HealthResponse(BaseModel):
    status: str
    service: str


__all__ = [
    "DividendOut",
    "ExchangeRateOut",
    "HealthResponse",
    "HoldingOut",
    "MessageResponse",
    "PortfolioSummaryOut",
    "TransactionOut",
]
