"""Webhook, read and maintenance routes."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Request

from ..core.telemetry import webhooks_received
from ..fx import FOREIGN_CURRENCY, REPORTING_CURRENCY
from ..models import Dividend, Holding, PortfolioSummary, Transaction
from ..service import PortfolioService
from .schemas import (
    DividendOut,
    ExchangeRateOut,
    HoldingOut,
    MessageResponse,
    PortfolioSummaryOut,
    TransactionOut,
)

logger = logging.getLogger(__name__)

WEBHOOK_ACK = "Email processed successfully"


def _serialize_transaction(tx: Transaction) -> TransactionOut:
    fields = asdict(tx)
    fields["type"] = tx.type.value
    return TransactionOut(**fields)


def _serialize_dividend(dividend: Dividend) -> DividendOut:
    return DividendOut(**asdict(dividend))


def _serialize_holding(holding: Holding) -> HoldingOut:
    return HoldingOut(**asdict(holding))


def _serialize_summary(summary: PortfolioSummary) -> PortfolioSummaryOut:
    return PortfolioSummaryOut(**asdict(summary))


async def _webhook_body(request: Request) -> Dict[str, Any]:
    """Read a webhook body as free-form fields.

    Brokerage notifications are never rejected for their shape: a body that is
    not a JSON object is treated as having no fields at all.
    """

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook %s body is not valid JSON, ignoring its content", request.url.path)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Webhook %s body is a %s, not an object", request.url.path, type(payload).__name__)
        return {}
    return payload


def get_portfolio_router(service: PortfolioService) -> APIRouter:
    router = APIRouter()

    @router.post("/webhooks/transactions", response_model=MessageResponse, tags=["webhooks"])
    async def transaction_webhook(request: Request) -> MessageResponse:
        body = await _webhook_body(request)
        logger.info("Transaction webhook received for %s", body.get("symbol"))
        await service.ingest_transaction(body)
        webhooks_received.add(1, {"kind": "transaction"})
        return MessageResponse(message=WEBHOOK_ACK)

    @router.post("/webhooks/dividends", response_model=MessageResponse, tags=["webhooks"])
    async def dividend_webhook(request: Request) -> MessageResponse:
        body = await _webhook_body(request)
        logger.info("Dividend webhook received for %s", body.get("symbol"))
        await service.ingest_dividend(body)
        webhooks_received.add(1, {"kind": "dividend"})
        return MessageResponse(message=WEBHOOK_ACK)

    @router.get("/portfolio/summary", response_model=PortfolioSummaryOut, tags=["portfolio"])
    async def get_portfolio_summary() -> PortfolioSummaryOut:
        summary = await service.get_or_calculate_summary()
        return _serialize_summary(summary)

    @router.get("/transactions", response_model=list[TransactionOut], tags=["ledger"])
    async def get_transactions() -> list[TransactionOut]:
        transactions = await service.repository.recent_transactions()
        return [_serialize_transaction(tx) for tx in transactions]

    @router.get("/dividends", response_model=list[DividendOut], tags=["ledger"])
    async def get_dividends() -> list[DividendOut]:
        dividends = await service.repository.recent_dividends()
        return [_serialize_dividend(d) for d in dividends]

    @router.get("/holdings", response_model=list[HoldingOut], tags=["portfolio"])
    async def get_holdings() -> list[HoldingOut]:
        holdings = await service.repository.list_holdings()
        return [_serialize_holding(h) for h in holdings]

    @router.get("/exchange-rate", response_model=ExchangeRateOut, tags=["portfolio"])
    async def get_exchange_rate() -> ExchangeRateOut:
        rate = await service.exchange_rate()
        return ExchangeRateOut(
            rate=rate,
            from_currency=FOREIGN_CURRENCY,
            to_currency=REPORTING_CURRENCY,
            timestamp=service.now(),
        )

    @router.post("/portfolio/recalculate", response_model=MessageResponse, tags=["maintenance"])
    async def recalculate_summary() -> MessageResponse:
        await service.recalculate()
        return MessageResponse(message="Portfolio summary recalculated successfully")

    @router.post("/holdings/recalculate", response_model=MessageResponse, tags=["maintenance"])
    async def recalculate_holdings() -> MessageResponse:
        holdings = await service.recalculate_holdings()
        return MessageResponse(message="Holdings recalculated successfully", count=len(holdings))

    @router.post("/backfill", response_model=MessageResponse, tags=["maintenance"])
    async def backfill() -> MessageResponse:
        await service.backfill()
        return MessageResponse(message="Historical data backfill completed successfully")

    @router.post("/holdings/refresh-prices", response_model=MessageResponse, tags=["maintenance"])
    async def refresh_prices() -> MessageResponse:
        count = await service.refresh_prices()
        if count == 0:
            return MessageResponse(message="No holdings to update", count=0)
        return MessageResponse(message=f"Updated prices for {count} symbols", count=count)

    return router


__all__ = ["get_portfolio_router"]
