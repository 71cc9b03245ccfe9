from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from opsledger.app.core.database import Base


class PropertyStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class RentType(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class BillStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class RentalProperty(Base):
    __tablename__ = "rental_properties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    property_type: Mapped[str] = mapped_column(String(30), nullable=False, default="office")
    rent_type: Mapped[RentType] = mapped_column(
        Enum(RentType), nullable=False, default=RentType.MONTHLY
    )
    monthly_rent_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    yearly_rent_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_period_months: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    landlord_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lease_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lease_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    department_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[PropertyStatus] = mapped_column(
        Enum(PropertyStatus), nullable=False, default=PropertyStatus.ACTIVE
    )
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class RentalPayment(Base):
    """Rent paid for one property and billing month.

    The unique (property_id, year, month) constraint is the storage backstop
    against paying the same month twice.
    """

    __tablename__ = "rental_payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("rental_properties.id"), nullable=False
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("categories.id"), nullable=True
    )
    flow_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cash_flows.id"), nullable=False
    )
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "property_id", "year", "month", name="uq_rental_payments_property_period"
        ),
    )


class RentalPayableBill(Base):
    __tablename__ = "rental_payable_bills"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("rental_properties.id"), nullable=False
    )
    bill_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[BillStatus] = mapped_column(
        Enum(BillStatus), nullable=False, default=BillStatus.UNPAID
    )
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_payment_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("rental_payments.id"), nullable=True
    )
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "property_id", "year", "month", name="uq_rental_bills_property_period"
        ),
        Index("ix_rental_bills_status_due", "status", "due_date"),
    )
