"""Rent payments, payable bill generation and lease changes."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy.orm import Session

from opsledger.app.core.config import settings
from opsledger.app.core.errors import (
    BusinessRuleError,
    DuplicateError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from opsledger.app.models.account import Account, FlowType
from opsledger.app.models.change_log import ChangeLog
from opsledger.app.models.ledger import AccountTransaction, CashFlow
from opsledger.app.models.rental import (
    BillStatus,
    PropertyStatus,
    RentalPayableBill,
    RentalPayment,
    RentalProperty,
    RentType,
)
from opsledger.app.schemas.rental import PropertyUpdate, RentPaymentCreate
from opsledger.app.services import rental as rental_service
from opsledger.app.services.posting import (
    EntityChange,
    LedgerLeg,
    PostingAction,
    PostingOperation,
    post,
)
from opsledger.app.services.rental import (
    RENT_PERIOD_CONFLICT,
    bill_amount_cents,
    generate_payable_bills,
    next_due_date,
    pay_rent,
    update_property,
)
from opsledger.app.workers.celery_app import celery
from opsledger.app.workers.tasks.rental_bills import generate_due_rental_bills


def _payment(prop: RentalProperty, account: Account, month: int = 1) -> RentPaymentCreate:
    return RentPaymentCreate(
        property_id=prop.id,
        year=2024,
        month=month,
        payment_date=date(2024, month, 5),
        amount_cents=20000,
        account_id=account.id,
    )


def _counts(db: Session) -> tuple[int, int, int, int]:
    return (
        db.query(CashFlow).count(),
        db.query(AccountTransaction).count(),
        db.query(RentalPayment).count(),
        db.query(ChangeLog).count(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Rent payment
# ═══════════════════════════════════════════════════════════════════════════════


class TestPayRent:
    def test_posts_expense_and_records_payment(
        self, db: Session, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        result = pay_rent(db, _payment(rental_property, cny_account), "tester")

        assert result["voucher_no"] == "JZ20240105-001"
        flow = db.get(CashFlow, result["flow_id"])
        assert flow.flow_type == FlowType.EXPENSE
        assert flow.counterparty == "Landlord Ltd"
        assert flow.source_type == "rental_payment"
        assert flow.source_id == result["payment_id"]
        assert flow.memo == "Rent 2024-01: Head Office (RP-001)"

        payment = db.get(RentalPayment, result["payment_id"])
        assert payment.flow_id == flow.id
        assert (payment.year, payment.month) == (2024, 1)

        snap = db.query(AccountTransaction).filter_by(flow_id=flow.id).one()
        assert snap.balance_after_cents == 80000

    def test_second_payment_for_period_is_duplicate(
        self, db: Session, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        first = pay_rent(db, _payment(rental_property, cny_account), "tester")
        before = _counts(db)

        with pytest.raises(DuplicateError) as exc_info:
            pay_rent(db, _payment(rental_property, cny_account), "tester")
        assert exc_info.value.reason == "RENT_ALREADY_PAID"
        assert _counts(db) == before

        # First payment is untouched
        payment = db.get(RentalPayment, first["payment_id"])
        assert payment.flow_id == first["flow_id"]

    def test_other_month_is_not_a_duplicate(
        self, db: Session, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        pay_rent(db, _payment(rental_property, cny_account, month=1), "tester")
        second = pay_rent(db, _payment(rental_property, cny_account, month=2), "tester")
        assert second["voucher_no"] == "JZ20240205-001"

    def test_period_constraint_maps_to_duplicate(
        self, db: Session, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        # A concurrent request that passed the lookup is stopped by the unique period
        pay_rent(db, _payment(rental_property, cny_account), "tester")
        before = _counts(db)

        def apply(db: Session, flows: list[CashFlow]) -> list[EntityChange]:
            db.add(
                RentalPayment(
                    property_id=rental_property.id,
                    payment_date=date(2024, 1, 6),
                    year=2024,
                    month=1,
                    amount_cents=20000,
                    currency="CNY",
                    account_id=cny_account.id,
                    flow_id=flows[0].id,
                    created_at=flows[0].created_at,
                )
            )
            db.flush()
            return []

        op = PostingOperation(
            action=PostingAction.RENT_PAYMENT,
            biz_date=date(2024, 1, 6),
            legs=[
                LedgerLeg(
                    account_id=cny_account.id,
                    flow_type=FlowType.EXPENSE,
                    amount_cents=20000,
                    currency="CNY",
                )
            ],
            apply=apply,
            created_by="tester",
            conflicts=(RENT_PERIOD_CONFLICT,),
        )
        with pytest.raises(DuplicateError) as exc_info:
            post(db, op)
        assert exc_info.value.reason == "RENT_ALREADY_PAID"
        assert _counts(db) == before

    def test_settles_open_bill(
        self, db: Session, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        (bill,) = generate_payable_bills(db, today=date(2024, 1, 20))
        assert (bill.year, bill.month) == (2024, 2)

        result = pay_rent(db, _payment(rental_property, cny_account, month=2), "tester")

        db.refresh(bill)
        assert bill.status == BillStatus.PAID
        assert bill.paid_payment_id == result["payment_id"]
        assert bill.paid_date == date(2024, 2, 5)

        log = db.query(ChangeLog).filter_by(entity_id=bill.id).one()
        assert log.change_type == "payment"
        assert log.changes["status"] == {"from": "unpaid", "to": "paid"}
        assert log.memo == f"Paid via {result['voucher_no']}"

    def test_bill_already_paid(
        self, db: Session, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        (bill,) = generate_payable_bills(db, today=date(2024, 1, 20))
        bill.status = BillStatus.PAID
        db.commit()

        with pytest.raises(BusinessRuleError) as exc_info:
            pay_rent(db, _payment(rental_property, cny_account, month=2), "tester")
        assert exc_info.value.reason == "BILL_ALREADY_PAID"
        assert db.query(CashFlow).count() == 0

    def test_unknown_property(self, db: Session, cny_account: Account) -> None:
        payload = RentPaymentCreate(
            property_id=uuid.uuid4(),
            year=2024,
            month=1,
            payment_date=date(2024, 1, 5),
            amount_cents=100,
            account_id=cny_account.id,
        )
        with pytest.raises(NotFoundError):
            pay_rent(db, payload, "tester")

    def test_month_out_of_range_is_rejected_by_schema(self, rental_property: RentalProperty) -> None:
        with pytest.raises(ValueError):
            RentPaymentCreate(
                property_id=rental_property.id,
                year=2024,
                month=13,
                payment_date=date(2024, 1, 5),
                amount_cents=100,
                account_id=uuid.uuid4(),
            )


# ═══════════════════════════════════════════════════════════════════════════════
#  Due dates & bill amounts
# ═══════════════════════════════════════════════════════════════════════════════


class TestNextDueDate:
    def test_monthly(self) -> None:
        assert next_due_date(date(2024, 1, 1), 1, 1, date(2024, 1, 20)) == date(2024, 2, 1)

    def test_due_today_moves_to_next_period(self) -> None:
        assert next_due_date(date(2024, 1, 1), 1, 1, date(2024, 2, 1)) == date(2024, 3, 1)

    def test_quarterly(self) -> None:
        assert next_due_date(date(2024, 1, 1), 3, 1, date(2024, 1, 1)) == date(2024, 4, 1)

    def test_payment_day_differs_from_lease_start(self) -> None:
        assert next_due_date(date(2024, 1, 10), 1, 5, date(2024, 1, 20)) == date(2024, 2, 5)

    def test_payment_day_clamped_to_month_end(self) -> None:
        assert next_due_date(date(2024, 1, 31), 1, 31, date(2024, 2, 1)) == date(2024, 2, 29)


class TestBillAmount:
    def test_monthly_times_period(self, rental_property: RentalProperty) -> None:
        rental_property.payment_period_months = 3
        assert bill_amount_cents(rental_property) == 60000

    def test_yearly_split_by_period(self, rental_property: RentalProperty) -> None:
        rental_property.rent_type = RentType.YEARLY
        rental_property.yearly_rent_cents = 240000
        rental_property.payment_period_months = 3
        assert bill_amount_cents(rental_property) == 60000


# ═══════════════════════════════════════════════════════════════════════════════
#  Payable bill generation
# ═══════════════════════════════════════════════════════════════════════════════


class TestGeneratePayableBills:
    def test_bill_raised_within_lead_time(
        self, db: Session, rental_property: RentalProperty
    ) -> None:
        (bill,) = generate_payable_bills(db, today=date(2024, 1, 20), actor="system")

        assert bill.property_id == rental_property.id
        assert bill.due_date == date(2024, 2, 1)
        assert bill.bill_date == date(2024, 1, 17)
        assert bill.amount_cents == 20000
        assert bill.currency == "CNY"
        assert bill.status == BillStatus.UNPAID
        assert bill.created_by == "system"

    def test_too_early(self, db: Session, rental_property: RentalProperty) -> None:
        assert generate_payable_bills(db, today=date(2024, 1, 10)) == []

    def test_idempotent(self, db: Session, rental_property: RentalProperty) -> None:
        generate_payable_bills(db, today=date(2024, 1, 20))
        assert generate_payable_bills(db, today=date(2024, 1, 25)) == []
        assert db.query(RentalPayableBill).count() == 1

    def test_due_after_lease_end(self, db: Session, rental_property: RentalProperty) -> None:
        assert generate_payable_bills(db, today=date(2024, 12, 20)) == []

    def test_inactive_property_skipped(self, db: Session, rental_property: RentalProperty) -> None:
        rental_property.status = PropertyStatus.INACTIVE
        db.commit()
        assert generate_payable_bills(db, today=date(2024, 1, 20)) == []


# ═══════════════════════════════════════════════════════════════════════════════
#  Lease changes
# ═══════════════════════════════════════════════════════════════════════════════


class TestUpdateProperty:
    def test_extension_is_a_renewal(self, db: Session, rental_property: RentalProperty) -> None:
        update_property(
            db, rental_property.id, PropertyUpdate(lease_end_date=date(2025, 12, 31)), "tester"
        )
        log = db.query(ChangeLog).filter_by(entity_id=rental_property.id).one()
        assert log.change_type == "renew"
        assert log.changes == {
            "lease_end_date": {"from": "2024-12-31", "to": "2025-12-31"}
        }

    def test_deactivation_is_a_termination(
        self, db: Session, rental_property: RentalProperty
    ) -> None:
        prop = update_property(
            db,
            rental_property.id,
            PropertyUpdate(status=PropertyStatus.INACTIVE, memo="Moved out"),
            "tester",
        )
        assert prop.status == PropertyStatus.INACTIVE
        log = db.query(ChangeLog).filter_by(entity_id=rental_property.id).one()
        assert log.change_type == "terminate"
        assert log.memo == "Moved out"
        assert prop.memo is None

    def test_rent_change_is_a_modification(
        self, db: Session, rental_property: RentalProperty
    ) -> None:
        update_property(db, rental_property.id, PropertyUpdate(monthly_rent_cents=22000), "tester")
        log = db.query(ChangeLog).filter_by(entity_id=rental_property.id).one()
        assert log.change_type == "modify"

    def test_end_before_start(self, db: Session, rental_property: RentalProperty) -> None:
        with pytest.raises(ValidationError):
            update_property(
                db,
                rental_property.id,
                PropertyUpdate(lease_end_date=date(2023, 12, 31)),
                "tester",
            )
        assert db.query(ChangeLog).count() == 0

    def test_schema_rejects_cleared_required_fields(self) -> None:
        with pytest.raises(ValueError):
            PropertyUpdate.model_validate({"name": None})
        with pytest.raises(ValueError):
            PropertyUpdate.model_validate({"status": None})
        with pytest.raises(ValueError):
            PropertyUpdate.model_validate({"payment_day": None})

    def test_storage_rejection_is_an_internal_error(
        self, db: Session, rental_property: RentalProperty
    ) -> None:
        payload = PropertyUpdate.model_construct(name=None)
        with pytest.raises(InternalError) as exc_info:
            update_property(db, rental_property.id, payload, "tester")
        assert exc_info.value.reason == "STORAGE_ERROR"

        db.refresh(rental_property)
        assert rental_property.name == "Head Office"
        assert db.query(ChangeLog).count() == 0


class TestDailyTask:
    def test_task_generates_bills_for_business_date(
        self,
        db: Session,
        rental_property: RentalProperty,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(rental_service, "business_date", lambda: date(2024, 1, 20))

        result = generate_due_rental_bills()

        assert result["created"] == 1
        bill = db.query(RentalPayableBill).one()
        assert result["bill_ids"] == [str(bill.id)]
        assert bill.created_by == "system"

    def test_beat_runs_daily_on_business_calendar(self) -> None:
        assert celery.conf.timezone == settings.BUSINESS_TIMEZONE
        entry = celery.conf.beat_schedule["generate-rental-bills-daily"]
        assert entry["task"] == generate_due_rental_bills.name
        assert entry["schedule"].hour == {1}
        assert entry["schedule"].minute == {0}
