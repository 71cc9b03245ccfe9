from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsledger.app.api.deps import http_error
from opsledger.app.core.database import get_db
from opsledger.app.core.errors import OpsError
from opsledger.app.schemas.accounts import (
    AccountBalanceOut,
    OpeningBalanceOut,
    OpeningBalanceSet,
)
from opsledger.app.services.accounts import get_account_balance, set_opening_balance

router = APIRouter()


@router.get("/{account_id}/balance", response_model=AccountBalanceOut)
def balance(account_id: UUID, db: Session = Depends(get_db)) -> AccountBalanceOut:
    try:
        return get_account_balance(db, account_id)
    except OpsError as e:
        raise http_error(e)


@router.put("/{account_id}/opening-balance", response_model=OpeningBalanceOut)
def opening_balance(
    account_id: UUID,
    payload: OpeningBalanceSet,
    db: Session = Depends(get_db),
) -> OpeningBalanceOut:
    try:
        return set_opening_balance(
            db,
            account_id,
            amount_cents=payload.amount_cents,
            as_of_date=payload.as_of_date,
        )
    except OpsError as e:
        raise http_error(e)
