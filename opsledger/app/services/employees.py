"""Employee onboarding.

Creating an employee is a workflow of local steps (the employee row, the
onboarding asset allocations) and external steps (mail forwarding for the
generated company address). Local steps are undone in reverse order when a
later local step fails; the external steps are best-effort.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from opsledger.app.core.clock import utcnow
from opsledger.app.core.config import settings
from opsledger.app.core.errors import BusinessRuleError, DuplicateError, NotFoundError
from opsledger.app.models.asset import AssetStatus, FixedAsset, FixedAssetAllocation
from opsledger.app.models.employee import Employee, EmployeeStatus
from opsledger.app.schemas.employees import EmployeeCreate
from opsledger.app.services.change_log import record_change, snapshot
from opsledger.app.services.email_routing import EmailRoutingClient
from opsledger.app.services.saga import SagaStep, StepKind, local_transaction, run_saga

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    digits = ""
    while n:
        n, rem = divmod(n, 36)
        digits = _BASE36[rem] + digits
    return digits or "0"


def email_prefix(name: str) -> str:
    """Lowercase, whitespace to dots, anything outside [a-z0-9.] dropped."""
    prefix = re.sub(r"\s+", ".", name.strip().lower())
    prefix = re.sub(r"[^a-z0-9.]", "", prefix)
    if not prefix:
        prefix = "employee_" + _base36(int(time.time() * 1000))
    return prefix


def generate_company_email(name: str, existing: set[str], domain: str) -> str:
    """Return ``prefix@domain``, or ``prefix2@domain``, ``prefix3@domain``... if taken."""
    prefix = email_prefix(name)
    email = f"{prefix}@{domain}"
    counter = 1
    while email.lower() in existing:
        counter += 1
        email = f"{prefix}{counter}@{domain}"
    return email


def _load_onboarding_assets(db: Session, asset_ids: list[UUID]) -> list[FixedAsset]:
    assets: list[FixedAsset] = []
    for asset_id in asset_ids:
        asset = db.get(FixedAsset, asset_id)
        if asset is None:
            raise NotFoundError("Asset not found", details={"asset_id": str(asset_id)})
        if asset.status in (AssetStatus.SOLD, AssetStatus.SCRAPPED):
            raise BusinessRuleError(
                f"Asset {asset.asset_code} is {asset.status.value} and cannot be allocated",
                reason="ASSET_UNAVAILABLE",
            )
        assets.append(asset)
    return assets


def create_employee(
    db: Session,
    payload: EmployeeCreate,
    actor: str | None,
    routing_client: EmailRoutingClient,
) -> dict[str, Any]:
    duplicate = (
        db.query(Employee.id)
        .filter(func.lower(Employee.personal_email) == payload.personal_email.lower())
        .first()
    )
    if duplicate is not None:
        raise DuplicateError(
            f"An employee with personal email {payload.personal_email} already exists",
            reason="PERSONAL_EMAIL_EXISTS",
        )

    assets = _load_onboarding_assets(db, payload.asset_ids)
    existing = {email.lower() for (email,) in db.query(Employee.email).all()}
    company_email = generate_company_email(
        payload.name, existing, settings.COMPANY_EMAIL_DOMAIN
    )

    # ── Local steps ──────────────────────────────────────────────────────

    def insert_employee(ctx: dict[str, Any]) -> UUID:
        def write() -> UUID:
            employee = Employee(
                name=payload.name,
                email=company_email,
                personal_email=payload.personal_email,
                department_id=payload.department_id,
                org_department_id=payload.org_department_id,
                position_id=payload.position_id,
                join_date=payload.join_date,
                phone=payload.phone,
                status=EmployeeStatus.PROBATION,
                memo=payload.memo,
                created_by=actor,
                created_at=utcnow(),
            )
            db.add(employee)
            db.flush()
            return employee.id

        try:
            employee_id = local_transaction(db, write)
        except IntegrityError as exc:
            raise DuplicateError(
                "Employee email already exists", reason="EMPLOYEE_EMAIL_EXISTS"
            ) from exc
        ctx["employee_id"] = employee_id
        return employee_id

    def delete_employee(ctx: dict[str, Any], employee_id: UUID) -> None:
        local_transaction(
            db,
            lambda: db.query(Employee)
            .filter(Employee.id == employee_id)
            .delete(synchronize_session=False),
        )
        logger.info("Removed employee %s after failed onboarding", employee_id)

    def allocate_assets(ctx: dict[str, Any]) -> list[tuple[UUID, str | None, UUID]]:
        def write() -> list[tuple[UUID, str | None, UUID]]:
            allocated: list[tuple[UUID, str | None, UUID]] = []
            for asset in assets:
                before = snapshot(asset, "fixed_asset")
                matched = (
                    db.query(FixedAsset)
                    .filter(
                        FixedAsset.id == asset.id,
                        FixedAsset.status.not_in([AssetStatus.SOLD, AssetStatus.SCRAPPED]),
                    )
                    .update(
                        {FixedAsset.custodian: payload.name, FixedAsset.updated_at: utcnow()},
                        synchronize_session="fetch",
                    )
                )
                if matched == 0:
                    raise BusinessRuleError(
                        f"Asset {asset.asset_code} was sold or scrapped during onboarding",
                        reason="ASSET_UNAVAILABLE",
                    )
                allocation = FixedAssetAllocation(
                    asset_id=asset.id,
                    employee_id=ctx["employee_id"],
                    allocation_date=payload.join_date,
                    allocation_type="employee_onboarding",
                    memo=f"Onboarding: {payload.name}",
                    created_by=actor,
                    created_at=utcnow(),
                )
                db.add(allocation)
                db.flush()
                record_change(
                    db,
                    entity_type="fixed_asset",
                    entity_id=asset.id,
                    change_type="allocate",
                    before=before,
                    after=snapshot(asset, "fixed_asset"),
                    actor=actor,
                    memo=f"Allocated to {payload.name}",
                    change_date=payload.join_date,
                )
                allocated.append((asset.id, before["custodian"], allocation.id))
            return allocated

        return local_transaction(db, write)

    def release_assets(
        ctx: dict[str, Any],
        allocated: list[tuple[UUID, str | None, UUID]],
    ) -> None:
        def write() -> None:
            for asset_id, previous_custodian, allocation_id in allocated:
                asset = db.get(FixedAsset, asset_id)
                if asset is not None:
                    before = snapshot(asset, "fixed_asset")
                    asset.custodian = previous_custodian
                    asset.updated_at = utcnow()
                    record_change(
                        db,
                        entity_type="fixed_asset",
                        entity_id=asset_id,
                        change_type="return",
                        before=before,
                        after=snapshot(asset, "fixed_asset"),
                        actor=actor,
                        memo="Onboarding rolled back",
                    )
                db.query(FixedAssetAllocation).filter(
                    FixedAssetAllocation.id == allocation_id
                ).delete(synchronize_session=False)

        local_transaction(db, write)

    # ── External steps ───────────────────────────────────────────────────

    def ensure_destination(ctx: dict[str, Any]) -> None:
        routing_client.ensure_destination_address(payload.personal_email)

    def create_rule(ctx: dict[str, Any]) -> str:
        rule_id = routing_client.create_routing_rule(company_email, payload.personal_email)
        ctx["routing_rule_id"] = rule_id
        return rule_id

    steps = [
        SagaStep("create_employee", StepKind.LOCAL, insert_employee, delete_employee),
        SagaStep("allocate_onboarding_assets", StepKind.LOCAL, allocate_assets, release_assets),
        SagaStep("ensure_destination_address", StepKind.EXTERNAL, ensure_destination),
        SagaStep("create_routing_rule", StepKind.EXTERNAL, create_rule),
    ]
    result = run_saga(steps, {"company_email": company_email})

    if result.external_failures:
        logger.warning(
            "Employee %s created without mail forwarding: %s",
            company_email, ", ".join(sorted(result.external_failures)),
        )
    else:
        logger.info("Employee %s onboarded", company_email)

    return {
        "employee_id": result.context["employee_id"],
        "company_email": company_email,
        "routing_created": result.succeeded("create_routing_rule"),
        "external_failures": result.external_failures,
    }
