from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel


class AccountBalanceOut(BaseModel):
    account_id: UUID
    currency: str
    opening_balance_cents: int
    balance_cents: int


class OpeningBalanceSet(BaseModel):
    amount_cents: int
    as_of_date: dt.date | None = None


class OpeningBalanceOut(BaseModel):
    account_id: UUID
    amount_cents: int
    as_of_date: dt.date | None
