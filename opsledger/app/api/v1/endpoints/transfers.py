from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from opsledger.app.api.deps import get_actor_id, http_error
from opsledger.app.core.database import get_db
from opsledger.app.core.errors import OpsError
from opsledger.app.schemas.transfers import TransferCreate, TransferOut
from opsledger.app.services.transfers import create_transfer

router = APIRouter()


@router.post("", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
def transfer(
    payload: TransferCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> dict:
    try:
        return create_transfer(db, payload, actor)
    except OpsError as e:
        raise http_error(e)
