"""Turn brokerage webhook payloads into ledger records.

Brokerage notifications arrive as loosely formatted key/value bodies where
amounts look like ``"US$1,234.56"``. Parsing is forgiving: an amount that
cannot be read becomes an absent optional field instead of a rejected request.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Mapping, Optional

from .fx import FOREIGN_CURRENCY, REPORTING_CURRENCY
from .models import Dividend, Transaction, TransactionType

logger = logging.getLogger(__name__)

USD_MARKER = "US$"
_NON_NUMERIC = re.compile(r"[^\d.\-]")


def parse_currency_amount(value: Any) -> Optional[float]:
    """Strip everything but digits, ``.`` and ``-`` and parse the rest as a float."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    cleaned = _NON_NUMERIC.sub("", value)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def infer_currency(*values: Any) -> str:
    """USD when any value carries the ``US$`` marker, else the reporting currency."""

    for value in values:
        if isinstance(value, str) and USD_MARKER in value:
            return FOREIGN_CURRENCY
    return REPORTING_CURRENCY


def infer_transaction_type(value: Any) -> TransactionType:
    if value is not None and "sell" in str(value).lower():
        return TransactionType.SELL
    return TransactionType.BUY


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _required_amount(payload: Mapping[str, Any], key: str) -> float:
    parsed = parse_currency_amount(payload.get(key))
    if parsed is None:
        logger.warning("Webhook field %r is missing or unreadable, defaulting to 0", key)
        return 0.0
    return parsed


def parse_transaction_payload(payload: Mapping[str, Any], received_at: datetime) -> Transaction:
    total_cost_raw = payload.get("total_cost")
    total_value_raw = payload.get("total_value")
    return Transaction(
        symbol=str(payload.get("symbol") or "").strip().upper(),
        type=infer_transaction_type(payload.get("type")),
        shares=_required_amount(payload, "shares"),
        average_price=_required_amount(payload, "average_price"),
        currency=infer_currency(total_value_raw, total_cost_raw),
        transaction_date=received_at,
        total_cost=parse_currency_amount(total_cost_raw),
        total_value=parse_currency_amount(total_value_raw),
        account=_optional_str(payload.get("account")),
        time=_optional_str(payload.get("time")),
    )


def parse_dividend_payload(payload: Mapping[str, Any], received_at: datetime) -> Dividend:
    amount_raw = payload.get("amount")
    return Dividend(
        symbol=str(payload.get("symbol") or "").strip().upper(),
        amount=_required_amount(payload, "amount"),
        currency=infer_currency(amount_raw),
        payment_date=received_at,
        account=_optional_str(payload.get("account")),
    )


__all__ = [
    "USD_MARKER",
    "infer_currency",
    "infer_transaction_type",
    "parse_currency_amount",
    "parse_dividend_payload",
    "parse_transaction_payload",
]
