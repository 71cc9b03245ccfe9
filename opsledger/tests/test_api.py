"""HTTP surface: routing, error-kind to status mapping, request ids."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from opsledger.app.models.account import Account
from opsledger.app.models.asset import FixedAsset
from opsledger.app.models.ledger import CashFlow
from opsledger.app.models.rental import RentalProperty
from opsledger.tests.conftest import actor


def _purchase_body(account: Account, code: str = "FA-API", price: int = 30000) -> dict:
    return {
        "asset_code": code,
        "name": "Monitor",
        "purchase_date": "2024-01-10",
        "purchase_price_cents": price,
        "currency": "CNY",
        "account_id": str(account.id),
    }


class TestFixedAssetEndpoints:
    def test_purchase_returns_201(self, client: TestClient, cny_account: Account) -> None:
        r = client.post("/api/v1/fixed-assets/purchase", json=_purchase_body(cny_account), headers=actor())
        assert r.status_code == 201
        assert r.json()["voucher_no"] == "JZ20240110-001"

    def test_actor_is_recorded(self, client: TestClient, db: Session, cny_account: Account) -> None:
        r = client.post(
            "/api/v1/fixed-assets/purchase", json=_purchase_body(cny_account), headers=actor("alice")
        )
        flow = db.get(CashFlow, uuid.UUID(r.json()["flow_id"]))
        assert flow.created_by == "alice"

    def test_duplicate_code_is_409(
        self, client: TestClient, cny_account: Account, asset: FixedAsset
    ) -> None:
        r = client.post("/api/v1/fixed-assets/purchase", json=_purchase_body(cny_account, code="FA-001"))
        assert r.status_code == 409
        detail = r.json()["detail"]
        assert detail["kind"] == "DUPLICATE"
        assert detail["reason"] == "ASSET_CODE_EXISTS"

    def test_insufficient_balance_is_400(self, client: TestClient, cny_account: Account) -> None:
        r = client.post(
            "/api/v1/fixed-assets/purchase", json=_purchase_body(cny_account, price=500000)
        )
        assert r.status_code == 400
        assert r.json()["detail"]["kind"] == "BUSINESS_ERROR"

    def test_sell_unknown_asset_is_404(self, client: TestClient, cny_account: Account) -> None:
        r = client.post(
            f"/api/v1/fixed-assets/{uuid.uuid4()}/sell",
            json={
                "sale_date": "2024-02-01",
                "sale_price_cents": 100,
                "buyer": "Buyer",
                "account_id": str(cny_account.id),
            },
        )
        assert r.status_code == 404
        assert r.json()["detail"]["kind"] == "NOT_FOUND"

    def test_schema_violation_is_422(self, client: TestClient, cny_account: Account) -> None:
        r = client.post(
            "/api/v1/fixed-assets/purchase", json=_purchase_body(cny_account, price=0)
        )
        assert r.status_code == 422

    def test_change_history(self, client: TestClient, asset: FixedAsset) -> None:
        client.patch(f"/api/v1/fixed-assets/{asset.id}", json={"status": "idle"}, headers=actor())
        r = client.get(f"/api/v1/fixed-assets/{asset.id}/changes")
        assert r.status_code == 200
        (entry,) = r.json()
        assert entry["change_type"] == "status_change"
        assert entry["changes"]["status"] == {"from": "in_use", "to": "idle"}


class TestRentalEndpoints:
    def test_duplicate_payment_is_409(
        self, client: TestClient, cny_account: Account, rental_property: RentalProperty
    ) -> None:
        body = {
            "property_id": str(rental_property.id),
            "year": 2024,
            "month": 1,
            "payment_date": "2024-01-05",
            "amount_cents": 20000,
            "account_id": str(cny_account.id),
        }
        assert client.post("/api/v1/rental/payments", json=body).status_code == 201
        r = client.post("/api/v1/rental/payments", json=body)
        assert r.status_code == 409
        assert r.json()["detail"]["reason"] == "RENT_ALREADY_PAID"

    def test_generate_bills(self, client: TestClient, rental_property: RentalProperty) -> None:
        r = client.post("/api/v1/rental/payable-bills/generate", json={"as_of": "2024-01-20"})
        assert r.status_code == 200
        (bill,) = r.json()
        assert bill["due_date"] == "2024-02-01"
        assert bill["status"] == "unpaid"


class TestTransferEndpoint:
    def test_missing_destination_is_400(self, client: TestClient, cny_account: Account) -> None:
        r = client.post(
            "/api/v1/account-transfers",
            json={
                "transfer_date": "2024-03-01",
                "from_account_id": str(cny_account.id),
                "from_amount_cents": 100,
            },
        )
        assert r.status_code == 400
        assert r.json()["detail"] == {
            "kind": "VALIDATION",
            "message": "Destination account is required",
            "reason": "MISSING_DESTINATION",
        }


class TestAccountEndpoints:
    def test_balance(self, client: TestClient, cny_account: Account) -> None:
        client.post("/api/v1/fixed-assets/purchase", json=_purchase_body(cny_account))
        r = client.get(f"/api/v1/accounts/{cny_account.id}/balance")
        assert r.status_code == 200
        assert r.json()["opening_balance_cents"] == 100000
        assert r.json()["balance_cents"] == 70000

    def test_set_opening_balance(self, client: TestClient, second_cny_account: Account) -> None:
        r = client.put(
            f"/api/v1/accounts/{second_cny_account.id}/opening-balance",
            json={"amount_cents": 5000, "as_of_date": "2024-01-01"},
        )
        assert r.status_code == 200
        balance = client.get(f"/api/v1/accounts/{second_cny_account.id}/balance").json()
        assert balance["balance_cents"] == 5000

    def test_unknown_account_is_404(self, client: TestClient) -> None:
        r = client.get(f"/api/v1/accounts/{uuid.uuid4()}/balance")
        assert r.status_code == 404


class TestEmployeeEndpoint:
    def test_onboard(self, client: TestClient) -> None:
        r = client.post(
            "/api/v1/employees",
            json={"name": "Wang Wu", "personal_email": "wangwu@mail.test", "join_date": "2024-03-01"},
            headers=actor("hr"),
        )
        assert r.status_code == 201
        assert r.json()["company_email"] == "wang.wu@example.com"
        assert r.json()["routing_created"] is True


class TestRequestId:
    def test_generated_when_absent(self, client: TestClient) -> None:
        r = client.get(f"/api/v1/accounts/{uuid.uuid4()}/balance")
        assert len(r.headers["X-Request-ID"]) == 32

    def test_echoed_when_valid(self, client: TestClient) -> None:
        r = client.get(
            f"/api/v1/accounts/{uuid.uuid4()}/balance", headers={"X-Request-ID": "req-123"}
        )
        assert r.headers["X-Request-ID"] == "req-123"

    def test_malformed_id_replaced(self, client: TestClient) -> None:
        r = client.get(
            f"/api/v1/accounts/{uuid.uuid4()}/balance", headers={"X-Request-ID": "bad id!"}
        )
        assert r.headers["X-Request-ID"] != "bad id!"
