from __future__ import annotations

import logging
import uuid
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
from opsledger.app.models.asset import AssetStatus, FixedAsset
from opsledger.app.models.ledger import CashFlow
from opsledger.app.schemas.assets import AssetPurchaseCreate, AssetSaleCreate, AssetUpdate
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

ENTITY_TYPE = "fixed_asset"

ASSET_CODE_CONFLICT = ConflictRule(
    markers=("fixed_assets_asset_code_key", "fixed_assets.asset_code"),
    message="Asset code already exists",
    reason="ASSET_CODE_EXISTS",
)


def _get_asset(db: Session, asset_id: UUID) -> FixedAsset:
    asset = db.get(FixedAsset, asset_id)
    if asset is None:
        raise NotFoundError("Asset not found", details={"asset_id": str(asset_id)})
    return asset


def _ensure_not_terminal(asset: FixedAsset) -> None:
    if asset.status == AssetStatus.SOLD:
        raise BusinessRuleError(
            f"Asset {asset.asset_code} has already been sold", reason="ASSET_SOLD"
        )
    if asset.status == AssetStatus.SCRAPPED:
        raise BusinessRuleError(
            f"Asset {asset.asset_code} has been scrapped", reason="ASSET_SCRAPPED"
        )


# ─── Purchase ────────────────────────────────────────────────────────────────


def purchase_asset(
    db: Session,
    payload: AssetPurchaseCreate,
    actor: str | None,
) -> dict[str, Any]:
    """Register a new asset and post its purchase as an expense."""
    existing = (
        db.query(FixedAsset.id)
        .filter(FixedAsset.asset_code == payload.asset_code)
        .first()
    )
    if existing is not None:
        raise DuplicateError(
            f"Asset code '{payload.asset_code}' already exists",
            reason="ASSET_CODE_EXISTS",
        )

    asset_id = uuid.uuid4()

    def apply(db: Session, flows: list[CashFlow]) -> list[EntityChange]:
        asset = FixedAsset(
            id=asset_id,
            asset_code=payload.asset_code,
            name=payload.name,
            category=payload.category,
            purchase_date=payload.purchase_date,
            purchase_price_cents=payload.purchase_price_cents,
            currency=payload.currency,
            vendor_name=payload.vendor_name,
            department_id=payload.department_id,
            site_id=payload.site_id,
            custodian=payload.custodian,
            status=AssetStatus.IN_USE,
            current_value_cents=payload.purchase_price_cents,
            memo=payload.memo,
            created_by=actor,
            created_at=utcnow(),
        )
        db.add(asset)
        db.flush()
        return [
            EntityChange(
                entity_type=ENTITY_TYPE,
                entity_id=asset_id,
                change_type="purchase",
                before={},
                after=snapshot(asset, ENTITY_TYPE),
                memo=f"Purchased via {flows[0].voucher_no}",
            )
        ]

    result = post(
        db,
        PostingOperation(
            action=PostingAction.ASSET_PURCHASE,
            biz_date=payload.purchase_date,
            legs=[
                LedgerLeg(
                    account_id=payload.account_id,
                    flow_type=FlowType.EXPENSE,
                    amount_cents=payload.purchase_price_cents,
                    currency=payload.currency,
                    category_id=payload.category_id,
                    counterparty=payload.vendor_name,
                    memo=f"Asset purchase: {payload.name} ({payload.asset_code})",
                )
            ],
            apply=apply,
            created_by=actor,
            department_id=payload.department_id,
            site_id=payload.site_id,
            source_type=ENTITY_TYPE,
            source_id=asset_id,
            conflicts=(ASSET_CODE_CONFLICT,),
        ),
    )
    return {"asset_id": asset_id, "flow_id": result.entry_id, "voucher_no": result.voucher_no}


# ─── Sale ────────────────────────────────────────────────────────────────────


def sell_asset(
    db: Session,
    asset_id: UUID,
    payload: AssetSaleCreate,
    actor: str | None,
) -> dict[str, Any]:
    """Post the sale proceeds as income and move the asset to ``sold``.

    The status check before posting is optimistic. The status update itself
    only matches a row that is not yet sold, so a concurrent sale that
    committed first turns this one into a BUSINESS_ERROR and a rollback.
    """
    asset = _get_asset(db, asset_id)
    before = snapshot(asset, ENTITY_TYPE)

    def precheck(db: Session) -> None:
        _ensure_not_terminal(asset)

    def apply(db: Session, flows: list[CashFlow]) -> list[EntityChange]:
        matched = (
            db.query(FixedAsset)
            .filter(FixedAsset.id == asset_id, FixedAsset.status != AssetStatus.SOLD)
            .update(
                {
                    FixedAsset.status: AssetStatus.SOLD,
                    FixedAsset.sale_date: payload.sale_date,
                    FixedAsset.sale_price_cents: payload.sale_price_cents,
                    FixedAsset.sale_buyer: payload.buyer,
                    FixedAsset.updated_at: utcnow(),
                },
                synchronize_session="fetch",
            )
        )
        if matched == 0:
            raise BusinessRuleError(
                f"Asset {asset.asset_code} has already been sold", reason="ASSET_SOLD"
            )
        return [
            EntityChange(
                entity_type=ENTITY_TYPE,
                entity_id=asset_id,
                change_type="sale",
                before=before,
                after=snapshot(asset, ENTITY_TYPE),
                memo=f"Sold via {flows[0].voucher_no}",
            )
        ]

    result = post(
        db,
        PostingOperation(
            action=PostingAction.ASSET_SALE,
            biz_date=payload.sale_date,
            legs=[
                LedgerLeg(
                    account_id=payload.account_id,
                    flow_type=FlowType.INCOME,
                    amount_cents=payload.sale_price_cents,
                    currency=asset.currency,
                    category_id=payload.category_id,
                    counterparty=payload.buyer,
                    memo=payload.memo or f"Asset sale: {asset.name} ({asset.asset_code})",
                )
            ],
            apply=apply,
            precheck=precheck,
            created_by=actor,
            department_id=asset.department_id,
            site_id=asset.site_id,
            source_type=ENTITY_TYPE,
            source_id=asset_id,
        ),
    )
    return {"flow_id": result.entry_id, "voucher_no": result.voucher_no}


# ─── Update ──────────────────────────────────────────────────────────────────


def update_asset(
    db: Session,
    asset_id: UUID,
    payload: AssetUpdate,
    actor: str | None,
) -> FixedAsset:
    """Apply field changes to an asset that has not been sold.

    The write only matches a row that is not yet sold, so a sale committed
    after the asset was read turns the update into a BUSINESS_ERROR.
    """
    asset = _get_asset(db, asset_id)
    if asset.status == AssetStatus.SOLD:
        raise BusinessRuleError(
            f"Asset {asset.asset_code} has been sold and can no longer be changed",
            reason="ASSET_SOLD",
        )
    if payload.status == AssetStatus.SOLD:
        raise ValidationError("Use the sale operation to mark an asset as sold")

    values = payload.model_dump(exclude_unset=True)
    # Describes the change, not the asset
    memo = values.pop("memo", None)
    before = snapshot(asset, ENTITY_TYPE)

    try:
        matched = (
            db.query(FixedAsset)
            .filter(FixedAsset.id == asset_id, FixedAsset.status != AssetStatus.SOLD)
            .update(
                {
                    **{getattr(FixedAsset, field): value for field, value in values.items()},
                    FixedAsset.updated_at: utcnow(),
                },
                synchronize_session="fetch",
            )
        )
        if matched == 0:
            raise BusinessRuleError(
                f"Asset {asset.asset_code} has been sold and can no longer be changed",
                reason="ASSET_SOLD",
            )
        after = snapshot(asset, ENTITY_TYPE)
        change_type = "status_change" if before["status"] != after["status"] else "update"
        record_change(
            db,
            entity_type=ENTITY_TYPE,
            entity_id=asset.id,
            change_type=change_type,
            before=before,
            after=after,
            actor=actor,
            memo=memo,
            change_date=business_date(),
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.error("Update of asset %s rejected by storage: %s", asset_id, exc.orig)
        raise InternalError("Storage rejected the asset update", reason="STORAGE_ERROR") from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    logger.info("Updated asset %s (%s)", asset.asset_code, change_type)
    return asset
