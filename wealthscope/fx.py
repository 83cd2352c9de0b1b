"""FX conversion helpers."""
from __future__ import annotations

import enum
from typing import Optional


class Currency(str, enum.Enum):
    """Currencies the portfolio knows how to normalize."""

    CAD = "CAD"
    USD = "USD"

    @classmethod
    def parse(cls, code: Optional[str]) -> Optional["Currency"]:
        """Return the matching member, or ``None`` for unrecognized codes."""

        if not code:
            return None
        try:
            return cls(code.strip().upper())
        except ValueError:
            return None


REPORTING_CURRENCY = Currency.CAD.value
FOREIGN_CURRENCY = Currency.USD.value


def convert_to_reporting_currency(amount: float, currency: Optional[str], fx_rate: float) -> float:
    """Convert ``amount`` into the reporting currency.

    ``fx_rate`` is expressed as foreign (USD) to reporting (CAD). Unknown
    currencies pass through unconverted.
    """

    parsed = Currency.parse(currency)
    if parsed is Currency.CAD:
        return amount
    if parsed is Currency.USD:
        return amount * fx_rate
    return amount


__all__ = [
    "Currency",
    "FOREIGN_CURRENCY",
    "REPORTING_CURRENCY",
    "convert_to_reporting_currency",
]
