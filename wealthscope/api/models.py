"""ORM models for the ledger, derived holdings and the cached summary."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base

SUMMARY_KEY = "current"


class TransactionRecord(Base):
    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_date", "transaction_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(Text, index=True)
    type: Mapped[str] = mapped_column(String(8))
    shares: Mapped[float] = mapped_column(Float)
    average_price: Mapped[float] = mapped_column(Float)
    total_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3))
    account: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    time: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class DividendRecord(Base):
    __tablename__ = "dividends"
    __table_args__ = (Index("ix_dividends_payment_date", "payment_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(Text, index=True)
    amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3))
    account: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class HoldingRecord(Base):
    __tablename__ = "holdings"

    symbol: Mapped[str] = mapped_column(Text, primary_key=True)
    quantity: Mapped[float] = mapped_column(Float)
    avg_buy_price: Mapped[float] = mapped_column(Float)
    avg_buy_price_cad: Mapped[float] = mapped_column(Float)
    current_price: Mapped[float] = mapped_column(Float)
    current_price_cad: Mapped[float] = mapped_column(Float)
    total_invested: Mapped[float] = mapped_column(Float)
    total_invested_cad: Mapped[float] = mapped_column(Float)
    market_value: Mapped[float] = mapped_column(Float)
    market_value_cad: Mapped[float] = mapped_column(Float)
    unrealized_gain_loss: Mapped[float] = mapped_column(Float)
    unrealized_gain_loss_cad: Mapped[float] = mapped_column(Float)
    unrealized_gain_loss_percentage: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3))
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class PortfolioSummaryRecord(Base):
    __tablename__ = "portfolio_summary"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=SUMMARY_KEY)
    total_invested: Mapped[float] = mapped_column(Float)
    total_dividends_ytd: Mapped[float] = mapped_column(Float)
    portfolio_value: Mapped[float] = mapped_column(Float)
    gain_loss: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3))
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))


__all__ = [
    "DividendRecord",
    "HoldingRecord",
    "PortfolioSummaryRecord",
    "SUMMARY_KEY",
    "TransactionRecord",
]
