from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from opsledger.app.models.rental import BillStatus, PropertyStatus


class RentPaymentCreate(BaseModel):
    property_id: UUID
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    payment_date: dt.date
    amount_cents: int = Field(gt=0)
    account_id: UUID
    category_id: UUID | None = None
    memo: str | None = None


class RentPaymentOut(BaseModel):
    payment_id: UUID
    flow_id: UUID
    voucher_no: str


class PayableBillGenerate(BaseModel):
    as_of: dt.date | None = None


class PayableBillOut(BaseModel):
    id: UUID
    property_id: UUID
    bill_date: dt.date
    due_date: dt.date
    year: int
    month: int
    amount_cents: int
    currency: str
    status: BillStatus

    class Config:
        from_attributes = True


class PropertyUpdate(BaseModel):
    name: str | None = None
    status: PropertyStatus | None = None
    lease_start_date: dt.date | None = None
    lease_end_date: dt.date | None = None
    monthly_rent_cents: int | None = Field(default=None, gt=0)
    yearly_rent_cents: int | None = Field(default=None, gt=0)
    payment_day: int | None = Field(default=None, ge=1, le=31)
    landlord_name: str | None = None
    memo: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Name must not be empty")
        return v.strip()

    @field_validator("status", "payment_day")
    @classmethod
    def not_cleared(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field cannot be cleared")
        return v


class PropertyOut(BaseModel):
    id: UUID
    property_code: str
    name: str
    status: PropertyStatus
    lease_start_date: dt.date | None
    lease_end_date: dt.date | None
    monthly_rent_cents: int | None
    currency: str

    class Config:
        from_attributes = True
