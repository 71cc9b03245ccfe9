"""Atomic multi-entity postings.

A posting writes, inside one storage transaction: one ledger entry and one
balance snapshot per leg, the business-entity mutation supplied by the
caller, and the change-log row for that mutation. Either everything commits
or the session is rolled back and nothing is written.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from opsledger.app.core.clock import utcnow
from opsledger.app.core.config import settings
from opsledger.app.core.errors import (
    BusinessRuleError,
    DuplicateError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from opsledger.app.models.account import Account, Category, FlowType
from opsledger.app.models.ledger import AccountTransaction, CashFlow
from opsledger.app.services.balance import balance_before, later_snapshot_count
from opsledger.app.services.change_log import record_change
from opsledger.app.services.vouchers import allocate_voucher_no

logger = logging.getLogger(__name__)

VOUCHER_CONSTRAINT_MARKERS = ("uq_cash_flows_biz_date_voucher_no", "cash_flows.voucher_no")


class PostingAction(str, enum.Enum):
    ASSET_PURCHASE = "asset_purchase"
    ASSET_SALE = "asset_sale"
    RENT_PAYMENT = "rent_payment"
    ACCOUNT_TRANSFER = "account_transfer"


@dataclass
class LedgerLeg:
    account_id: UUID
    flow_type: FlowType
    amount_cents: int
    currency: str
    category_id: UUID | None = None
    counterparty: str | None = None
    memo: str | None = None


@dataclass
class EntityChange:
    """Before/after snapshot of an entity mutated by a posting."""

    entity_type: str
    entity_id: UUID
    change_type: str
    before: dict[str, Any]
    after: dict[str, Any]
    memo: str | None = None


@dataclass(frozen=True)
class ConflictRule:
    """Maps a storage uniqueness violation to a DUPLICATE error.

    ``markers`` are matched against the driver's error text: the constraint
    name as PostgreSQL reports it, or ``table.column`` as SQLite reports it.
    """

    markers: tuple[str, ...]
    message: str
    reason: str | None = None

    def matches(self, exc: IntegrityError) -> bool:
        text = str(exc.orig)
        return any(marker in text for marker in self.markers)


ApplyFn = Callable[[Session, list[CashFlow]], list[EntityChange]]
PrecheckFn = Callable[[Session], None]


@dataclass
class PostingOperation:
    action: PostingAction
    biz_date: date
    legs: list[LedgerLeg]
    apply: ApplyFn | None = None
    precheck: PrecheckFn | None = None
    created_by: str | None = None
    department_id: UUID | None = None
    site_id: UUID | None = None
    source_type: str | None = None
    source_id: UUID | None = None
    conflicts: tuple[ConflictRule, ...] = ()


@dataclass
class PostedEntry:
    flow_id: UUID
    voucher_no: str
    account_id: UUID
    flow_type: FlowType
    amount_cents: int
    balance_before_cents: int
    balance_after_cents: int


@dataclass
class PostingResult:
    entry_id: UUID
    voucher_no: str
    entries: list[PostedEntry] = field(default_factory=list)


# ─── Preconditions ───────────────────────────────────────────────────────────


def _check_legs(db: Session, operation: PostingOperation) -> None:
    if not operation.legs:
        raise ValidationError("A posting needs at least one ledger leg")

    for leg in operation.legs:
        if leg.amount_cents is None or leg.amount_cents <= 0:
            raise ValidationError(
                "Amount must be a positive number of cents",
                details={"amount_cents": leg.amount_cents},
            )

        account = db.get(Account, leg.account_id)
        if account is None:
            raise NotFoundError(
                "Account not found",
                reason="ACCOUNT_NOT_FOUND",
                details={"account_id": str(leg.account_id)},
            )
        if not account.is_active:
            raise BusinessRuleError(
                f"Account '{account.name}' is inactive",
                reason="ACCOUNT_INACTIVE",
                details={"account_id": str(account.id)},
            )
        if account.currency != leg.currency:
            raise BusinessRuleError(
                f"Currency mismatch: account is {account.currency}, "
                f"operation is {leg.currency}",
                reason="CURRENCY_MISMATCH",
                details={"account_currency": account.currency, "currency": leg.currency},
            )

        if leg.category_id is not None:
            category = db.get(Category, leg.category_id)
            if category is None:
                raise NotFoundError(
                    "Category not found",
                    reason="CATEGORY_NOT_FOUND",
                    details={"category_id": str(leg.category_id)},
                )
            if category.kind != leg.flow_type:
                raise ValidationError(
                    f"Category '{category.name}' is not an {leg.flow_type.value} category",
                    reason="CATEGORY_KIND_MISMATCH",
                )


def _check_backdating(db: Session, operation: PostingOperation) -> None:
    for account_id in {leg.account_id for leg in operation.legs}:
        stale = later_snapshot_count(db, account_id, operation.biz_date)
        if not stale:
            continue
        if not settings.LEDGER_ALLOW_BACKDATING:
            raise BusinessRuleError(
                "Posting date is earlier than the latest entry on the account",
                reason="BACKDATED_POSTING",
                details={"account_id": str(account_id), "later_entries": stale},
            )
        logger.warning(
            "Backdated %s on %s for account %s: %d later balance snapshots are now stale",
            operation.action.value, operation.biz_date, account_id, stale,
        )


# ─── Posting ─────────────────────────────────────────────────────────────────


def _post_once(db: Session, operation: PostingOperation) -> PostingResult:
    flows: list[CashFlow] = []
    entries: list[PostedEntry] = []
    last_created_at: datetime | None = None

    for leg in operation.legs:
        created_at = utcnow()
        # Strictly increasing within a posting so the same-day tiebreak orders legs
        if last_created_at is not None and created_at <= last_created_at:
            created_at = last_created_at + timedelta(microseconds=1)
        last_created_at = created_at

        before = balance_before(db, leg.account_id, operation.biz_date, created_at)
        if leg.flow_type == FlowType.INCOME:
            after = before + leg.amount_cents
        else:
            after = before - leg.amount_cents
            if settings.LEDGER_ENFORCE_SUFFICIENT_BALANCE and after < 0:
                raise BusinessRuleError(
                    "Insufficient balance",
                    reason="INSUFFICIENT_BALANCE",
                    details={
                        "account_id": str(leg.account_id),
                        "balance_cents": before,
                        "amount_cents": leg.amount_cents,
                    },
                )

        voucher_no = allocate_voucher_no(db, operation.biz_date)
        flow = CashFlow(
            voucher_no=voucher_no,
            biz_date=operation.biz_date,
            flow_type=leg.flow_type,
            account_id=leg.account_id,
            category_id=leg.category_id,
            amount_cents=leg.amount_cents,
            counterparty=leg.counterparty,
            memo=leg.memo,
            department_id=operation.department_id,
            site_id=operation.site_id,
            source_type=operation.source_type,
            source_id=operation.source_id,
            created_by=operation.created_by,
            created_at=created_at,
        )
        db.add(flow)
        db.flush()

        db.add(
            AccountTransaction(
                account_id=leg.account_id,
                flow_id=flow.id,
                transaction_date=operation.biz_date,
                transaction_type=leg.flow_type,
                amount_cents=leg.amount_cents,
                balance_before_cents=before,
                balance_after_cents=after,
                created_at=created_at,
            )
        )
        db.flush()

        flows.append(flow)
        entries.append(
            PostedEntry(
                flow_id=flow.id,
                voucher_no=voucher_no,
                account_id=leg.account_id,
                flow_type=leg.flow_type,
                amount_cents=leg.amount_cents,
                balance_before_cents=before,
                balance_after_cents=after,
            )
        )

    if operation.apply is not None:
        for change in operation.apply(db, flows):
            record_change(
                db,
                entity_type=change.entity_type,
                entity_id=change.entity_id,
                change_type=change.change_type,
                before=change.before,
                after=change.after,
                actor=operation.created_by,
                memo=change.memo,
                change_date=operation.biz_date,
            )

    db.commit()
    return PostingResult(
        entry_id=entries[0].flow_id,
        voucher_no=entries[0].voucher_no,
        entries=entries,
    )


def post(db: Session, operation: PostingOperation) -> PostingResult:
    """Post ``operation`` atomically and return the first leg's entry id and voucher.

    Preconditions are checked before any write. A voucher-number collision
    rolls back and retries the whole posting with a fresh count, up to
    ``VOUCHER_MAX_RETRIES`` attempts.
    """
    try:
        _check_legs(db, operation)
        if operation.precheck is not None:
            operation.precheck(db)
        _check_backdating(db, operation)
    except Exception:
        db.rollback()
        raise

    attempts = max(settings.VOUCHER_MAX_RETRIES, 1)
    for attempt in range(1, attempts + 1):
        try:
            result = _post_once(db, operation)
        except IntegrityError as exc:
            db.rollback()
            text = str(exc.orig)
            if any(marker in text for marker in VOUCHER_CONSTRAINT_MARKERS):
                logger.warning(
                    "Voucher collision on %s (attempt %d/%d), retrying",
                    operation.biz_date, attempt, attempts,
                )
                continue
            for rule in operation.conflicts:
                if rule.matches(exc):
                    raise DuplicateError(rule.message, reason=rule.reason) from exc
            logger.error("Posting %s failed on a storage constraint: %s", operation.action.value, text)
            raise InternalError("Storage rejected the posting", reason="STORAGE_ERROR") from exc
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Posted %s: %s (%d leg%s)",
            operation.action.value,
            ", ".join(entry.voucher_no for entry in result.entries),
            len(result.entries),
            "" if len(result.entries) == 1 else "s",
        )
        return result

    raise InternalError(
        f"Could not allocate a voucher number for {operation.biz_date} "
        f"after {attempts} attempts",
        reason="SEQUENCE_CONTENTION",
    )
