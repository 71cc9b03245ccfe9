from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from opsledger.app.core.database import Base


class EmployeeStatus(str, enum.Enum):
    PROBATION = "probation"
    REGULAR = "regular"
    RESIGNED = "resigned"


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Company mailbox, forwarded to personal_email by the mail-routing provider
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    personal_email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    department_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    org_department_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    position_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    join_date: Mapped[date] = mapped_column(Date, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[EmployeeStatus] = mapped_column(
        Enum(EmployeeStatus), nullable=False, default=EmployeeStatus.PROBATION
    )
    is_active: Mapped[bool] = mapped_column(default=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_employees_department", "department_id"),
    )
