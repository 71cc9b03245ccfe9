from __future__ import annotations

from fastapi import HTTPException, Header, status

from opsledger.app.core.errors import ErrorKind, OpsError
from opsledger.app.services.email_routing import EmailRoutingClient

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.BUSINESS_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str | None:
    """Caller identity, set by the authentication layer in front of this service."""
    return x_actor_id.strip() if x_actor_id and x_actor_id.strip() else None


def get_email_routing_client() -> EmailRoutingClient:
    return EmailRoutingClient.from_settings()


def http_error(exc: OpsError) -> HTTPException:
    """Translate a service error into an HTTP error by its kind alone."""
    return HTTPException(status_code=_STATUS_BY_KIND[exc.kind], detail=exc.to_dict())
