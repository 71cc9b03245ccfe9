from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from opsledger.app.core.clock import business_date, utcnow
from opsledger.app.core.errors import (
    BusinessRuleError,
    DuplicateError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from opsledger.app.models.account import FlowType
from opsledger.app.models.ledger import CashFlow
from opsledger.app.models.rental import (
    BillStatus,
    PropertyStatus,
    RentalPayableBill,
    RentalPayment,
    RentalProperty,
    RentType,
)
from opsledger.app.schemas.rental import PropertyUpdate, RentPaymentCreate
from opsledger.app.services.change_log import record_change, snapshot
from opsledger.app.services.posting import (
    ConflictRule,
    EntityChange,
    LedgerLeg,
    PostingAction,
    PostingOperation,
    post,
)

logger = logging.getLogger(__name__)

# Bills are raised this many days before the payment is due
BILL_LEAD_DAYS = 15

RENT_PERIOD_CONFLICT = ConflictRule(
    markers=("uq_rental_payments_property_period", "rental_payments.property_id"),
    message="Rent for this period has already been paid",
    reason="RENT_ALREADY_PAID",
)


def _get_property(db: Session, property_id: UUID) -> RentalProperty:
    prop = db.get(RentalProperty, property_id)
    if prop is None:
        raise NotFoundError("Property not found", details={"property_id": str(property_id)})
    return prop


# ─── Rent payment ────────────────────────────────────────────────────────────


def pay_rent(
    db: Session,
    payload: RentPaymentCreate,
    actor: str | None,
) -> dict[str, Any]:
    """Pay one month of rent: expense posting, payment row, bill settlement.

    A second payment for the same (property, year, month) fails with
    DUPLICATE, whether it is caught by the lookup below or, under a race,
    by the unique period constraint on ``rental_payments``.
    """
    prop = _get_property(db, payload.property_id)

    paid = (
        db.query(RentalPayment.id)
        .filter(
            RentalPayment.property_id == prop.id,
            RentalPayment.year == payload.year,
            RentalPayment.month == payload.month,
        )
        .first()
    )
    if paid is not None:
        raise DuplicateError(
            f"Rent for {payload.year}-{payload.month:02d} has already been paid",
            reason="RENT_ALREADY_PAID",
        )

    bill = (
        db.query(RentalPayableBill)
        .filter(
            RentalPayableBill.property_id == prop.id,
            RentalPayableBill.year == payload.year,
            RentalPayableBill.month == payload.month,
        )
        .first()
    )
    if bill is not None and bill.status == BillStatus.PAID:
        raise BusinessRuleError(
            f"Bill for {payload.year}-{payload.month:02d} is already paid",
            reason="BILL_ALREADY_PAID",
        )
    bill_id = bill.id if bill is not None else None
    bill_before = snapshot(bill, "rental_payable_bill") if bill is not None else None

    payment_id = uuid.uuid4()

    def apply(db: Session, flows: list[CashFlow]) -> list[EntityChange]:
        db.add(
            RentalPayment(
                id=payment_id,
                property_id=prop.id,
                payment_date=payload.payment_date,
                year=payload.year,
                month=payload.month,
                amount_cents=payload.amount_cents,
                currency=prop.currency,
                account_id=payload.account_id,
                category_id=payload.category_id,
                flow_id=flows[0].id,
                memo=payload.memo,
                created_by=actor,
                created_at=utcnow(),
            )
        )
        db.flush()

        if bill_id is None:
            return []

        matched = (
            db.query(RentalPayableBill)
            .filter(
                RentalPayableBill.id == bill_id,
                RentalPayableBill.status == BillStatus.UNPAID,
            )
            .update(
                {
                    RentalPayableBill.status: BillStatus.PAID,
                    RentalPayableBill.paid_date: payload.payment_date,
                    RentalPayableBill.paid_payment_id: payment_id,
                },
                synchronize_session="fetch",
            )
        )
        if matched == 0:
            raise BusinessRuleError(
                f"Bill for {payload.year}-{payload.month:02d} is already paid",
                reason="BILL_ALREADY_PAID",
            )
        settled = db.get(RentalPayableBill, bill_id)
        return [
            EntityChange(
                entity_type="rental_payable_bill",
                entity_id=bill_id,
                change_type="payment",
                before=bill_before or {},
                after=snapshot(settled, "rental_payable_bill"),
                memo=f"Paid via {flows[0].voucher_no}",
            )
        ]

    result = post(
        db,
        PostingOperation(
            action=PostingAction.RENT_PAYMENT,
            biz_date=payload.payment_date,
            legs=[
                LedgerLeg(
                    account_id=payload.account_id,
                    flow_type=FlowType.EXPENSE,
                    amount_cents=payload.amount_cents,
                    currency=prop.currency,
                    category_id=payload.category_id,
                    counterparty=prop.landlord_name,
                    memo=payload.memo
                    or f"Rent {payload.year}-{payload.month:02d}: {prop.name} ({prop.property_code})",
                )
            ],
            apply=apply,
            created_by=actor,
            department_id=prop.department_id,
            source_type="rental_payment",
            source_id=payment_id,
            conflicts=(RENT_PERIOD_CONFLICT,),
        ),
    )
    return {"payment_id": payment_id, "flow_id": result.entry_id, "voucher_no": result.voucher_no}


# ─── Payable bills ───────────────────────────────────────────────────────────


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _with_day(d: date, day: int) -> date:
    return d.replace(day=min(day, calendar.monthrange(d.year, d.month)[1]))


def next_due_date(lease_start: date, period_months: int, payment_day: int, today: date) -> date:
    """First payment date after ``today``, stepping from the lease start by the payment period."""
    due = lease_start
    while due <= today or due != _with_day(due, payment_day):
        if due <= today:
            due = _add_months(due, period_months)
        due = _with_day(due, payment_day)
    return due


def bill_amount_cents(prop: RentalProperty) -> int:
    period = prop.payment_period_months or 1
    if prop.rent_type == RentType.YEARLY:
        return round((prop.yearly_rent_cents or 0) / (12 / period))
    return (prop.monthly_rent_cents or 0) * period


def generate_payable_bills(
    db: Session,
    *,
    today: date | None = None,
    actor: str | None = None,
) -> list[RentalPayableBill]:
    """Raise an unpaid bill for each active lease whose next payment falls due soon.

    A bill is created once its bill date (due date minus the lead time) has
    been reached and no bill exists yet for that property and month.
    """
    today = today or business_date()
    properties = (
        db.query(RentalProperty)
        .filter(
            RentalProperty.status == PropertyStatus.ACTIVE,
            RentalProperty.lease_start_date.is_not(None),
            RentalProperty.lease_end_date.is_not(None),
        )
        .all()
    )

    created: list[RentalPayableBill] = []
    for prop in properties:
        due = next_due_date(
            prop.lease_start_date,
            prop.payment_period_months or 1,
            prop.payment_day or 1,
            today,
        )
        if due > prop.lease_end_date:
            continue
        bill_date = due - timedelta(days=BILL_LEAD_DAYS)
        if bill_date > today:
            continue

        exists = (
            db.query(RentalPayableBill.id)
            .filter(
                RentalPayableBill.property_id == prop.id,
                RentalPayableBill.year == due.year,
                RentalPayableBill.month == due.month,
            )
            .first()
        )
        if exists is not None:
            continue

        bill = RentalPayableBill(
            property_id=prop.id,
            bill_date=bill_date,
            due_date=due,
            year=due.year,
            month=due.month,
            amount_cents=bill_amount_cents(prop),
            currency=prop.currency,
            status=BillStatus.UNPAID,
            memo=f"Auto-generated: {prop.name} ({prop.property_code})",
            created_by=actor,
            created_at=utcnow(),
        )
        db.add(bill)
        created.append(bill)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    for bill in created:
        db.refresh(bill)
    logger.info("Generated %d rental payable bill(s) as of %s", len(created), today)
    return created


# ─── Property update ─────────────────────────────────────────────────────────


def update_property(
    db: Session,
    property_id: UUID,
    payload: PropertyUpdate,
    actor: str | None,
) -> RentalProperty:
    """Apply lease changes and log them as a termination, renewal or modification."""
    prop = _get_property(db, property_id)
    values = payload.model_dump(exclude_unset=True)

    start = values.get("lease_start_date", prop.lease_start_date)
    end = values.get("lease_end_date", prop.lease_end_date)
    if start is not None and end is not None and end < start:
        raise ValidationError("Lease end date must not be earlier than the start date")

    # Describes the change, not the property
    memo = values.pop("memo", None)
    before = snapshot(prop, "rental_property")
    old_end = prop.lease_end_date
    for field, value in values.items():
        setattr(prop, field, value)
    prop.updated_at = utcnow()
    after = snapshot(prop, "rental_property")

    if before["status"] != after["status"] and prop.status == PropertyStatus.INACTIVE:
        change_type = "terminate"
    elif old_end is not None and prop.lease_end_date is not None and prop.lease_end_date > old_end:
        change_type = "renew"
    else:
        change_type = "modify"

    try:
        record_change(
            db,
            entity_type="rental_property",
            entity_id=prop.id,
            change_type=change_type,
            before=before,
            after=after,
            actor=actor,
            memo=memo,
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.error("Update of property %s rejected by storage: %s", property_id, exc.orig)
        raise InternalError("Storage rejected the property update", reason="STORAGE_ERROR") from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(prop)
    logger.info("Updated property %s (%s)", prop.property_code, change_type)
    return prop
