from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from opsledger.app.api.deps import get_actor_id, http_error
from opsledger.app.core.database import get_db
from opsledger.app.core.errors import OpsError
from opsledger.app.models.rental import RentalPayableBill, RentalProperty
from opsledger.app.schemas.rental import (
    PayableBillGenerate,
    PayableBillOut,
    PropertyOut,
    PropertyUpdate,
    RentPaymentCreate,
    RentPaymentOut,
)
from opsledger.app.services.rental import generate_payable_bills, pay_rent, update_property

router = APIRouter()


@router.post("/payments", response_model=RentPaymentOut, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: RentPaymentCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> dict:
    try:
        return pay_rent(db, payload, actor)
    except OpsError as e:
        raise http_error(e)


@router.post("/payable-bills/generate", response_model=list[PayableBillOut])
def generate_bills(
    payload: PayableBillGenerate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> list[RentalPayableBill]:
    return generate_payable_bills(db, today=payload.as_of, actor=actor)


@router.patch("/properties/{property_id}", response_model=PropertyOut)
def patch_property(
    property_id: UUID,
    payload: PropertyUpdate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
) -> RentalProperty:
    try:
        return update_property(db, property_id, payload, actor)
    except OpsError as e:
        raise http_error(e)
