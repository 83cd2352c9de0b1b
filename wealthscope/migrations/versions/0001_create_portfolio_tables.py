"""
Create ledger, holdings and portfolio summary tables.

Revision ID: 0001_create_portfolio_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect

revision = "0001_create_portfolio_tables"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(bind, table_name: str) -> bool:
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "transactions"):
        op.create_table(
            "transactions",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("symbol", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=8), nullable=False),
            sa.Column("shares", sa.Float(), nullable=False),
            sa.Column("average_price", sa.Float(), nullable=False),
            sa.Column("total_cost", sa.Float()),
            sa.Column("total_value", sa.Float()),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("account", sa.Text()),
            sa.Column("time", sa.Text()),
            sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
            sa.Index("ix_transactions_symbol", "symbol"),
            sa.Index("ix_transactions_date", "transaction_date"),
        )

    if not _has_table(bind, "dividends"):
        op.create_table(
            "dividends",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("symbol", sa.Text(), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("account", sa.Text()),
            sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
            sa.Index("ix_dividends_symbol", "symbol"),
            sa.Index("ix_dividends_payment_date", "payment_date"),
        )

    if not _has_table(bind, "holdings"):
        op.create_table(
            "holdings",
            sa.Column("symbol", sa.Text(), primary_key=True),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("avg_buy_price", sa.Float(), nullable=False),
            sa.Column("avg_buy_price_cad", sa.Float(), nullable=False),
            sa.Column("current_price", sa.Float(), nullable=False),
            sa.Column("current_price_cad", sa.Float(), nullable=False),
            sa.Column("total_invested", sa.Float(), nullable=False),
            sa.Column("total_invested_cad", sa.Float(), nullable=False),
            sa.Column("market_value", sa.Float(), nullable=False),
            sa.Column("market_value_cad", sa.Float(), nullable=False),
            sa.Column("unrealized_gain_loss", sa.Float(), nullable=False),
            sa.Column("unrealized_gain_loss_cad", sa.Float(), nullable=False),
            sa.Column("unrealized_gain_loss_percentage", sa.Float(), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        )

    if not _has_table(bind, "portfolio_summary"):
        op.create_table(
            "portfolio_summary",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("total_invested", sa.Float(), nullable=False),
            sa.Column("total_dividends_ytd", sa.Float(), nullable=False),
            sa.Column("portfolio_value", sa.Float(), nullable=False),
            sa.Column("gain_loss", sa.Float(), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        )


def downgrade() -> None:
    for table_name in ("portfolio_summary", "holdings", "dividends", "transactions"):
        op.drop_table(table_name)
