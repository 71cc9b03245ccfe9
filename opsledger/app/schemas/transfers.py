from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class TransferCreate(BaseModel):
    transfer_date: dt.date
    from_account_id: UUID
    # Optional here so the service can report a missing destination itself
    to_account_id: UUID | None = None
    from_amount_cents: int = Field(gt=0)
    to_amount_cents: int | None = Field(default=None, gt=0)
    exchange_rate: Decimal | None = Field(default=None, gt=0)
    memo: str | None = None


class TransferOut(BaseModel):
    transfer_id: UUID
    from_flow_id: UUID
    to_flow_id: UUID
    from_voucher_no: str
    to_voucher_no: str
