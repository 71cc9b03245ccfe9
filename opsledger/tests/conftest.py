"""Shared test fixtures.

Each test gets a fresh schema on an in-memory SQLite database. Services
commit and roll back for real, so the schema is dropped after every test
instead of wrapping the test in a transaction.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from opsledger.app.api.deps import get_email_routing_client
from opsledger.app.core.database import Base, SessionLocal, engine, get_db
from opsledger.app.main import app
from opsledger.app.models.all import (
    Account,
    AccountTransaction,
    AccountType,
    AssetStatus,
    CashFlow,
    Category,
    FixedAsset,
    FlowType,
    OpeningBalance,
    RentalProperty,
    RentType,
)
from opsledger.app.services.balance import OPENING_BALANCE_ACCOUNT
from opsledger.app.services.email_routing import EmailRoutingClient


# ─── DB session on a fresh schema ────────────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def routing_calls() -> list[httpx.Request]:
    """Requests seen by the mock mail-routing API."""
    return []


@pytest.fixture()
def routing_handler(routing_calls: list[httpx.Request]) -> Callable[[httpx.Request], httpx.Response]:
    """Default mock mail-routing API: every call succeeds."""

    def handler(request: httpx.Request) -> httpx.Response:
        routing_calls.append(request)
        if request.url.path.endswith("/email/routing/rules"):
            return httpx.Response(200, json={"success": True, "errors": [], "result": {"id": "rule-1"}})
        return httpx.Response(200, json={"success": True, "errors": [], "result": {"id": "addr-1"}})

    return handler


@pytest.fixture()
def routing_client(routing_handler: Callable[[httpx.Request], httpx.Response]) -> EmailRoutingClient:
    return make_routing_client(routing_handler)


def make_routing_client(handler: Callable[[httpx.Request], httpx.Response]) -> EmailRoutingClient:
    return EmailRoutingClient(
        account_id="acct-1",
        zone_id="zone-1",
        api_token="token",
        base_url="https://routing.test/client/v4",
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture()
def client(db: Session, routing_client: EmailRoutingClient) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session and mock routing API."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_email_routing_client] = lambda: routing_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def actor(name: str = "tester") -> dict[str, str]:
    """Return the caller-identity header dict."""
    return {"X-Actor-Id": name}


# ─── Accounts & categories ───────────────────────────────────────────────────


def make_account(
    db: Session,
    *,
    name: str,
    currency: str = "CNY",
    opening_cents: int | None = None,
    is_active: bool = True,
) -> Account:
    account = Account(
        name=name,
        account_type=AccountType.BANK,
        currency=currency,
        is_active=is_active,
    )
    db.add(account)
    db.flush()
    if opening_cents is not None:
        db.add(
            OpeningBalance(
                type=OPENING_BALANCE_ACCOUNT,
                ref_id=str(account.id),
                amount_cents=opening_cents,
            )
        )
    db.commit()
    return account


@pytest.fixture()
def cny_account(db: Session) -> Account:
    """Active CNY account with an opening balance of 100000 cents."""
    return make_account(db, name="Operating CNY", opening_cents=100000)


@pytest.fixture()
def second_cny_account(db: Session) -> Account:
    return make_account(db, name="Petty Cash", opening_cents=0)


@pytest.fixture()
def usd_account(db: Session) -> Account:
    return make_account(db, name="Operating USD", currency="USD", opening_cents=50000)


@pytest.fixture()
def inactive_account(db: Session) -> Account:
    return make_account(db, name="Closed Account", opening_cents=100000, is_active=False)


@pytest.fixture()
def expense_category(db: Session) -> Category:
    cat = Category(name="Fixed Asset Purchase", kind=FlowType.EXPENSE)
    db.add(cat)
    db.commit()
    return cat


@pytest.fixture()
def income_category(db: Session) -> Category:
    cat = Category(name="Asset Disposal", kind=FlowType.INCOME)
    db.add(cat)
    db.commit()
    return cat


# ─── Assets & rentals ────────────────────────────────────────────────────────


def make_asset(db: Session, code: str = "FA-001", **overrides: Any) -> FixedAsset:
    values: dict[str, Any] = {
        "asset_code": code,
        "name": "Laptop",
        "category": "IT",
        "purchase_date": date(2024, 1, 2),
        "purchase_price_cents": 30000,
        "currency": "CNY",
        "status": AssetStatus.IN_USE,
        "current_value_cents": 30000,
    }
    values.update(overrides)
    asset = FixedAsset(**values)
    db.add(asset)
    db.commit()
    return asset


@pytest.fixture()
def asset(db: Session) -> FixedAsset:
    return make_asset(db)


@pytest.fixture()
def rental_property(db: Session) -> RentalProperty:
    prop = RentalProperty(
        property_code="RP-001",
        name="Head Office",
        property_type="office",
        rent_type=RentType.MONTHLY,
        monthly_rent_cents=20000,
        currency="CNY",
        payment_period_months=1,
        payment_day=1,
        landlord_name="Landlord Ltd",
        lease_start_date=date(2024, 1, 1),
        lease_end_date=date(2024, 12, 31),
    )
    db.add(prop)
    db.commit()
    return prop


# ─── Raw ledger rows ─────────────────────────────────────────────────────────


def insert_entry(
    db: Session,
    account: Account,
    *,
    biz_date: date,
    created_at: datetime,
    voucher_no: str,
    amount_cents: int,
    flow_type: FlowType = FlowType.EXPENSE,
    before: int = 0,
) -> CashFlow:
    """Write a ledger entry and its snapshot directly, bypassing the posting service."""
    after = before + amount_cents if flow_type == FlowType.INCOME else before - amount_cents
    flow = CashFlow(
        voucher_no=voucher_no,
        biz_date=biz_date,
        flow_type=flow_type,
        account_id=account.id,
        amount_cents=amount_cents,
        created_at=created_at,
    )
    db.add(flow)
    db.flush()
    db.add(
        AccountTransaction(
            account_id=account.id,
            flow_id=flow.id,
            transaction_date=biz_date,
            transaction_type=flow_type,
            amount_cents=amount_cents,
            balance_before_cents=before,
            balance_after_cents=after,
            created_at=created_at,
        )
    )
    db.commit()
    return flow
