from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from opsledger.app.models.account import FlowType, OpeningBalance
from opsledger.app.models.ledger import AccountTransaction

OPENING_BALANCE_ACCOUNT = "account"


def _signed_amount():
    return case(
        (AccountTransaction.transaction_type == FlowType.INCOME, AccountTransaction.amount_cents),
        else_=-AccountTransaction.amount_cents,
    )


def opening_balance_cents(db: Session, account_id: UUID) -> int:
    """Opening balance for an account, 0 when none has been recorded.

    ``as_of_date`` on the row is informational only; the amount applies from
    the beginning of the ledger.
    """
    row = (
        db.query(OpeningBalance.amount_cents)
        .filter(
            OpeningBalance.type == OPENING_BALANCE_ACCOUNT,
            OpeningBalance.ref_id == str(account_id),
        )
        .first()
    )
    return int(row.amount_cents) if row else 0


def balance_before(
    db: Session,
    account_id: UUID,
    as_of_date: date,
    as_of_created_at: datetime,
) -> int:
    """Balance of ``account_id`` strictly before the point (as_of_date, as_of_created_at).

    Opening balance plus the signed sum of every snapshot dated earlier, plus
    the snapshots on the same date that were created earlier. Income counts
    positive, expense negative. Existing snapshots are never rewritten, so a
    posting dated before rows that already exist sees only what precedes it.
    """
    total = (
        db.query(func.coalesce(func.sum(_signed_amount()), 0))
        .filter(
            AccountTransaction.account_id == account_id,
            or_(
                AccountTransaction.transaction_date < as_of_date,
                and_(
                    AccountTransaction.transaction_date == as_of_date,
                    AccountTransaction.created_at < as_of_created_at,
                ),
            ),
        )
        .scalar()
    )
    return opening_balance_cents(db, account_id) + int(total or 0)


def current_balance(db: Session, account_id: UUID) -> int:
    """Opening balance plus every snapshot recorded for the account."""
    total = (
        db.query(func.coalesce(func.sum(_signed_amount()), 0))
        .filter(AccountTransaction.account_id == account_id)
        .scalar()
    )
    return opening_balance_cents(db, account_id) + int(total or 0)


def later_snapshot_count(db: Session, account_id: UUID, as_of_date: date) -> int:
    """Number of snapshots a posting on ``as_of_date`` would leave stale."""
    return (
        db.query(func.count(AccountTransaction.id))
        .filter(
            AccountTransaction.account_id == account_id,
            AccountTransaction.transaction_date > as_of_date,
        )
        .scalar()
    ) or 0
