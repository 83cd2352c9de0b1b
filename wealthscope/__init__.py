"""Core package for the WealthScope holdings aggregation engine."""

from .fx import convert_to_reporting_currency
from .holdings import calculate_portfolio
from .models import Dividend, Holding, PortfolioResult, PortfolioSummary, Transaction, TransactionType

__all__ = [
    "Dividend",
    "Holding",
    "PortfolioResult",
    "PortfolioSummary",
    "Transaction",
    "TransactionType",
    "calculate_portfolio",
    "convert_to_reporting_currency",
]
