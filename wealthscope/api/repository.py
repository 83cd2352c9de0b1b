"""Persistence gateway for the ledger, holdings and the cached summary."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import delete, select, update

from ..models import Dividend, Holding, PortfolioSummary, Transaction, TransactionType
from .database import Database
from .models import (
    SUMMARY_KEY,
    DividendRecord,
    HoldingRecord,
    PortfolioSummaryRecord,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

RECENT_LIMIT = 50


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_transaction(row: TransactionRecord) -> Transaction:
    return Transaction(
        id=row.id,
        symbol=row.symbol,
        type=TransactionType(row.type),
        shares=row.shares,
        average_price=row.average_price,
        total_cost=row.total_cost,
        total_value=row.total_value,
        currency=row.currency,
        account=row.account,
        time=row.time,
        transaction_date=_to_utc(row.transaction_date),
    )


def _to_dividend(row: DividendRecord) -> Dividend:
    return Dividend(
        id=row.id,
        symbol=row.symbol,
        amount=row.amount,
        currency=row.currency,
        account=row.account,
        payment_date=_to_utc(row.payment_date),
    )


def _to_holding(row: HoldingRecord) -> Holding:
    return Holding(
        symbol=row.symbol,
        quantity=row.quantity,
        avg_buy_price=row.avg_buy_price,
        avg_buy_price_cad=row.avg_buy_price_cad,
        current_price=row.current_price,
        current_price_cad=row.current_price_cad,
        total_invested=row.total_invested,
        total_invested_cad=row.total_invested_cad,
        market_value=row.market_value,
        market_value_cad=row.market_value_cad,
        unrealized_gain_loss=row.unrealized_gain_loss,
        unrealized_gain_loss_cad=row.unrealized_gain_loss_cad,
        unrealized_gain_loss_percentage=row.unrealized_gain_loss_percentage,
        currency=row.currency,
        last_updated=_to_utc(row.last_updated),
    )


def _holding_row(holding: Holding) -> HoldingRecord:
    return HoldingRecord(
        symbol=holding.symbol,
        quantity=holding.quantity,
        avg_buy_price=holding.avg_buy_price,
        avg_buy_price_cad=holding.avg_buy_price_cad,
        current_price=holding.current_price,
        current_price_cad=holding.current_price_cad,
        total_invested=holding.total_invested,
        total_invested_cad=holding.total_invested_cad,
        market_value=holding.market_value,
        market_value_cad=holding.market_value_cad,
        unrealized_gain_loss=holding.unrealized_gain_loss,
        unrealized_gain_loss_cad=holding.unrealized_gain_loss_cad,
        unrealized_gain_loss_percentage=holding.unrealized_gain_loss_percentage,
        currency=holding.currency,
        last_updated=_to_utc(holding.last_updated),
    )


class PortfolioRepository:
    """Read and write portfolio documents through one async database."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def list_transactions(self) -> List[Transaction]:
        """Return the full ledger ordered by transaction date, oldest first."""

        async with self._database.session() as session:
            result = await session.execute(
                select(TransactionRecord).order_by(
                    TransactionRecord.transaction_date.asc(), TransactionRecord.id.asc()
                )
            )
            return [_to_transaction(row) for row in result.scalars().all()]

    async def list_dividends_in_range(self, start: datetime, end: datetime) -> List[Dividend]:
        async with self._database.session() as session:
            result = await session.execute(
                select(DividendRecord)
                .where(
                    DividendRecord.payment_date >= _to_utc(start),
                    DividendRecord.payment_date <= _to_utc(end),
                )
                .order_by(DividendRecord.payment_date.asc(), DividendRecord.id.asc())
            )
            return [_to_dividend(row) for row in result.scalars().all()]

    async def recent_transactions(self, limit: int = RECENT_LIMIT) -> List[Transaction]:
        async with self._database.session() as session:
            result = await session.execute(
                select(TransactionRecord)
                .order_by(TransactionRecord.transaction_date.desc(), TransactionRecord.id.desc())
                .limit(limit)
            )
            return [_to_transaction(row) for row in result.scalars().all()]

    async def recent_dividends(self, limit: int = RECENT_LIMIT) -> List[Dividend]:
        async with self._database.session() as session:
            result = await session.execute(
                select(DividendRecord)
                .order_by(DividendRecord.payment_date.desc(), DividendRecord.id.desc())
                .limit(limit)
            )
            return [_to_dividend(row) for row in result.scalars().all()]

    async def append_transaction(self, transaction: Transaction) -> Transaction:
        row = TransactionRecord(
            symbol=transaction.symbol,
            type=transaction.type.value,
            shares=transaction.shares,
            average_price=transaction.average_price,
            total_cost=transaction.total_cost,
            total_value=transaction.total_value,
            currency=transaction.currency,
            account=transaction.account,
            time=transaction.time,
            transaction_date=_to_utc(transaction.transaction_date),
        )
        async with self._database.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info("Stored %s transaction %d for %s", row.type, row.id, row.symbol)
            return _to_transaction(row)

    async def append_dividend(self, dividend: Dividend) -> Dividend:
        row = DividendRecord(
            symbol=dividend.symbol,
            amount=dividend.amount,
            currency=dividend.currency,
            account=dividend.account,
            payment_date=_to_utc(dividend.payment_date),
        )
        async with self._database.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info("Stored dividend %d for %s", row.id, row.symbol)
            return _to_dividend(row)

    async def list_holdings(self) -> List[Holding]:
        async with self._database.session() as session:
            result = await session.execute(select(HoldingRecord).order_by(HoldingRecord.symbol))
            return [_to_holding(row) for row in result.scalars().all()]

    async def replace_holdings(self, holdings: Iterable[Holding]) -> int:
        """Swap the stored holdings for ``holdings`` in a single transaction."""

        rows = [_holding_row(holding) for holding in holdings]
        async with self._database.transaction() as session:
            await session.execute(delete(HoldingRecord))
            session.add_all(rows)
        logger.info("Saved %d holdings", len(rows))
        return len(rows)

    async def update_holding_prices(self, holdings: Iterable[Holding]) -> int:
        """Persist the price-derived fields of ``holdings`` in one batch."""

        count = 0
        async with self._database.transaction() as session:
            for holding in holdings:
                await session.execute(
                    update(HoldingRecord)
                    .where(HoldingRecord.symbol == holding.symbol)
                    .values(
                        current_price=holding.current_price,
                        current_price_cad=holding.current_price_cad,
                        market_value=holding.market_value,
                        market_value_cad=holding.market_value_cad,
                        last_updated=_to_utc(holding.last_updated),
                    )
                )
                count += 1
        return count

    async def get_summary(self) -> Optional[PortfolioSummary]:
        async with self._database.session() as session:
            row = await session.get(PortfolioSummaryRecord, SUMMARY_KEY)
            if row is None:
                return None
            return PortfolioSummary(
                total_invested=row.total_invested,
                total_dividends_ytd=row.total_dividends_ytd,
                portfolio_value=row.portfolio_value,
                gain_loss=row.gain_loss,
                last_updated=_to_utc(row.last_updated),
                currency=row.currency,
            )

    async def put_summary(self, summary: PortfolioSummary) -> None:
        row = PortfolioSummaryRecord(
            id=SUMMARY_KEY,
            total_invested=summary.total_invested,
            total_dividends_ytd=summary.total_dividends_ytd,
            portfolio_value=summary.portfolio_value,
            gain_loss=summary.gain_loss,
            currency=summary.currency,
            last_updated=_to_utc(summary.last_updated),
        )
        async with self._database.transaction() as session:
            await session.merge(row)


__all__ = ["PortfolioRepository", "RECENT_LIMIT"]
