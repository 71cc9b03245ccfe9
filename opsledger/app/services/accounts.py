from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from opsledger.app.core.errors import NotFoundError
from opsledger.app.models.account import Account, OpeningBalance
from opsledger.app.schemas.accounts import AccountBalanceOut, OpeningBalanceOut
from opsledger.app.services.balance import (
    OPENING_BALANCE_ACCOUNT,
    current_balance,
    later_snapshot_count,
    opening_balance_cents,
)

logger = logging.getLogger(__name__)


def _get_account(db: Session, account_id: UUID) -> Account:
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise NotFoundError("Account not found", details={"account_id": str(account_id)})
    return account


def get_account_balance(db: Session, account_id: UUID) -> AccountBalanceOut:
    account = _get_account(db, account_id)
    return AccountBalanceOut(
        account_id=account.id,
        currency=account.currency,
        opening_balance_cents=opening_balance_cents(db, account.id),
        balance_cents=current_balance(db, account.id),
    )


def set_opening_balance(
    db: Session,
    account_id: UUID,
    *,
    amount_cents: int,
    as_of_date: date | None = None,
) -> OpeningBalanceOut:
    """Create or replace the opening balance of an account.

    Snapshots already recorded keep the balances they were posted with.
    """
    account = _get_account(db, account_id)

    row = (
        db.query(OpeningBalance)
        .filter(
            OpeningBalance.type == OPENING_BALANCE_ACCOUNT,
            OpeningBalance.ref_id == str(account.id),
        )
        .first()
    )
    if row is None:
        row = OpeningBalance(type=OPENING_BALANCE_ACCOUNT, ref_id=str(account.id))
        db.add(row)
    row.amount_cents = amount_cents
    row.as_of_date = as_of_date

    # Any snapshot at all predates the new opening balance
    stale = later_snapshot_count(db, account.id, date.min)
    if stale:
        logger.warning(
            "Opening balance of account %s changed with %d snapshots already posted",
            account.id, stale,
        )

    db.commit()
    db.refresh(row)
    return OpeningBalanceOut(
        account_id=account.id,
        amount_cents=row.amount_cents,
        as_of_date=row.as_of_date,
    )
