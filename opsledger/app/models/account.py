from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Enum,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from opsledger.app.core.database import Base


class FlowType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


class AccountType(str, enum.Enum):
    CASH = "cash"
    BANK = "bank"
    WALLET = "wallet"
    OTHER = "other"


class Account(Base):
    """A cash-holding account. Its balance is always derived, never stored."""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        Enum(AccountType), nullable=False, default=AccountType.BANK
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_accounts_currency", "currency"),
    )


class OpeningBalance(Base):
    """Seed value for balance computation, keyed by (type, ref_id)."""

    __tablename__ = "opening_balances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    ref_id: Mapped[str] = mapped_column(String(36), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    as_of_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("type", "ref_id", name="uq_opening_balances_type_ref"),
    )


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[FlowType] = mapped_column(Enum(FlowType), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True)
