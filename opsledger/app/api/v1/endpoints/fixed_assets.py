from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from opsledger.app.api.deps import get_actor_id, http_error
from opsledger.app.core.database import get_db
from opsledger.app.core.errors import OpsError
from opsledger.app.models.asset import FixedAsset
from opsledger.app.schemas.assets import (
    AssetOut,
    AssetPurchaseCreate,
    AssetPurchaseOut,
    AssetSaleCreate,
    AssetSaleOut,
    AssetUpdate,
    ChangeLogOut,
)
from opsledger.app.services.change_log import list_entity_changes
from opsledger.app.services.fixed_assets import purchase_asset, sell_asset, update_asset

router = APIRouter()


@router.post("/purchase", response_model=AssetPurchaseOut, status_code=status.HTTP_201_CREATED)
def purchase(
    payload: AssetPurchaseCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> dict:
    try:
        return purchase_asset(db, payload, actor)
    except OpsError as e:
        raise http_error(e)


@router.post("/{asset_id}/sell", response_model=AssetSaleOut)
def sell(
    asset_id: UUID,
    payload: AssetSaleCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> dict:
    try:
        return sell_asset(db, asset_id, payload, actor)
    except OpsError as e:
        raise http_error(e)


@router.patch("/{asset_id}", response_model=AssetOut)
def update(
    asset_id: UUID,
    payload: AssetUpdate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> FixedAsset:
    try:
        return update_asset(db, asset_id, payload, actor)
    except OpsError as e:
        raise http_error(e)


@router.get("/{asset_id}/changes", response_model=list[ChangeLogOut])
def changes(asset_id: UUID, db: Session = Depends(get_db)) -> list:
    return list_entity_changes(db, asset_id)
