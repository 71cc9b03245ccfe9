from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from opsledger.app.core.database import Base
from opsledger.app.models.account import FlowType


class CashFlow(Base):
    """Append-only ledger entry for a single cash movement.

    ``voucher_no`` is allocated by counting the entries already posted on
    ``biz_date``. That count is race-prone, so (biz_date, voucher_no) is
    unique and the posting service retries on conflict.
    """

    __tablename__ = "cash_flows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    voucher_no: Mapped[str] = mapped_column(String(30), nullable=False)
    biz_date: Mapped[date] = mapped_column(Date, nullable=False)
    flow_type: Mapped[FlowType] = mapped_column(Enum(FlowType), nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("categories.id"), nullable=True
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    counterparty: Mapped[str | None] = mapped_column(String(255), nullable=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    department_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    site_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    # Originating business entity, denormalised for reporting
    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("biz_date", "voucher_no", name="uq_cash_flows_biz_date_voucher_no"),
        CheckConstraint("amount_cents > 0", name="ck_cash_flows_amount_positive"),
        Index("ix_cash_flows_account_date", "account_id", "biz_date", "created_at"),
        Index("ix_cash_flows_biz_date", "biz_date"),
        Index("ix_cash_flows_source", "source_type", "source_id"),
    )


class AccountTransaction(Base):
    """Balance snapshot captured when a :class:`CashFlow` is posted.

    ``balance_after_cents = balance_before_cents ± amount_cents`` depending on
    ``transaction_type``. Rows are never recomputed, so a backdated posting
    leaves the snapshots of later rows stale.
    """

    __tablename__ = "account_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    flow_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cash_flows.id"), nullable=False
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    transaction_type: Mapped[FlowType] = mapped_column(Enum(FlowType), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("flow_id", name="uq_account_transactions_flow"),
        Index(
            "ix_account_transactions_account_date",
            "account_id",
            "transaction_date",
            "created_at",
        ),
    )


class AccountTransfer(Base):
    """Movement between two accounts, posted as one expense and one income leg."""

    __tablename__ = "account_transfers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    from_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    to_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    from_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    to_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=8), nullable=True
    )
    from_flow_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cash_flows.id"), nullable=False
    )
    to_flow_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cash_flows.id"), nullable=False
    )
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_account_transfers_date", "transfer_date"),
    )
