from __future__ import annotations

from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from opsledger.app.core.config import settings
from opsledger.app.models.ledger import CashFlow


def format_voucher_no(biz_date: date, sequence: int) -> str:
    """Return a voucher number like JZ20240110-001."""
    return f"{settings.VOUCHER_PREFIX}{biz_date:%Y%m%d}-{sequence:03d}"


def _sequence_of(voucher_no: str) -> int:
    _, _, tail = voucher_no.rpartition("-")
    return int(tail) if tail.isdigit() else 0


def allocate_voucher_no(db: Session, biz_date: date) -> str:
    """Next voucher number for ``biz_date``: entries already on that date + 1.

    The count is not serialised against concurrent postings. Two callers can
    compute the same number; the unique (biz_date, voucher_no) constraint
    rejects the second insert and the posting service retries.

    Must be called inside the posting transaction, after earlier legs of the
    same posting have been flushed.
    """
    count = (
        db.query(func.count(CashFlow.id))
        .filter(CashFlow.biz_date == biz_date)
        .scalar()
    ) or 0
    candidate = format_voucher_no(biz_date, count + 1)

    taken = (
        db.query(CashFlow.id)
        .filter(CashFlow.biz_date == biz_date, CashFlow.voucher_no == candidate)
        .first()
    )
    if taken is None:
        return candidate

    # A gap in the day's numbering; continue after the highest issued number
    issued = db.query(CashFlow.voucher_no).filter(CashFlow.biz_date == biz_date).all()
    highest = max((_sequence_of(row.voucher_no) for row in issued), default=0)
    return format_voucher_no(biz_date, highest + 1)
