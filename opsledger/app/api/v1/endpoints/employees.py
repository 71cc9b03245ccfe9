from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from opsledger.app.api.deps import get_actor_id, get_email_routing_client, http_error
from opsledger.app.core.database import get_db
from opsledger.app.core.errors import OpsError
from opsledger.app.schemas.employees import EmployeeCreate, EmployeeCreated
from opsledger.app.services.email_routing import EmailRoutingClient
from opsledger.app.services.employees import create_employee

router = APIRouter()


@router.post("", response_model=EmployeeCreated, status_code=status.HTTP_201_CREATED)
def onboard(
    payload: EmployeeCreate,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor_id),
    routing_client: EmailRoutingClient = Depends(get_email_routing_client),
) -> dict:
    try:
        return create_employee(db, payload, actor, routing_client)
    except OpsError as e:
        raise http_error(e)
