from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from opsledger.app.models.asset import AssetStatus


def _currency_code(v: str) -> str:
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("Currency must be a 3-letter code")
    return v


class AssetPurchaseCreate(BaseModel):
    asset_code: str
    name: str
    category: str | None = None
    purchase_date: dt.date
    purchase_price_cents: int = Field(gt=0)
    currency: str
    vendor_name: str | None = None
    department_id: UUID | None = None
    site_id: UUID | None = None
    custodian: str | None = None
    account_id: UUID
    category_id: UUID | None = None
    memo: str | None = None

    @field_validator("asset_code", "name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Must not be empty")
        return v.strip()

    @field_validator("currency")
    @classmethod
    def currency_code(cls, v: str) -> str:
        return _currency_code(v)


class AssetSaleCreate(BaseModel):
    sale_date: dt.date
    sale_price_cents: int = Field(gt=0)
    buyer: str | None = None
    account_id: UUID
    category_id: UUID | None = None
    memo: str | None = None


class AssetUpdate(BaseModel):
    name: str | None = None
    status: AssetStatus | None = None
    custodian: str | None = None
    department_id: UUID | None = None
    site_id: UUID | None = None
    current_value_cents: int | None = Field(default=None, ge=0)
    memo: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Name must not be empty")
        return v.strip()

    @field_validator("status")
    @classmethod
    def not_sold(cls, v: AssetStatus | None) -> AssetStatus:
        if v is None:
            raise ValueError("Status cannot be cleared")
        if v == AssetStatus.SOLD:
            raise ValueError("Use the sell endpoint to mark an asset as sold")
        return v


class AssetPurchaseOut(BaseModel):
    asset_id: UUID
    flow_id: UUID
    voucher_no: str


class AssetSaleOut(BaseModel):
    flow_id: UUID
    voucher_no: str


class AssetOut(BaseModel):
    id: UUID
    asset_code: str
    name: str
    status: AssetStatus
    custodian: str | None
    department_id: UUID | None
    site_id: UUID | None
    purchase_price_cents: int
    currency: str
    sale_price_cents: int | None

    class Config:
        from_attributes = True


class ChangeLogOut(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    change_type: str
    change_date: dt.date
    changes: dict[str, Any]
    memo: str | None
    created_by: str | None
    created_at: dt.datetime

    class Config:
        from_attributes = True
