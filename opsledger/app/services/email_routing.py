"""HTTP client for a Cloudflare-style email routing API.

Used to forward a new employee's company mailbox to their personal address.
Every call is bounded by ``EMAIL_ROUTING_TIMEOUT_SECONDS``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from opsledger.app.core.config import settings

logger = logging.getLogger(__name__)


class EmailRoutingError(Exception):
    """Structured error from the email routing API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class EmailRoutingClient:
    def __init__(
        self,
        *,
        account_id: str,
        zone_id: str,
        api_token: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.account_id = account_id
        self.zone_id = zone_id
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> EmailRoutingClient:
        return cls(
            account_id=settings.EMAIL_ROUTING_ACCOUNT_ID,
            zone_id=settings.EMAIL_ROUTING_ZONE_ID,
            api_token=settings.EMAIL_ROUTING_API_TOKEN,
            base_url=settings.EMAIL_ROUTING_API_BASE_URL,
            timeout=settings.EMAIL_ROUTING_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.account_id and self.zone_id and self.api_token)

    def _client(self) -> httpx.Client:
        if not self.configured:
            raise EmailRoutingError("Email routing credentials not configured")
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Content-Type": "application/json",
            },
        )

    @staticmethod
    def _handle_response(resp: httpx.Response) -> dict[str, Any]:
        """Return the ``result`` object, raising unless the API reports success."""
        try:
            data: dict[str, Any] = resp.json()
        except ValueError:
            raise EmailRoutingError(
                resp.text or f"HTTP {resp.status_code} (empty body)",
                status_code=resp.status_code,
                error_code="INVALID_RESPONSE",
            )

        if resp.status_code >= 400 or not data.get("success"):
            errors: list[dict[str, Any]] = data.get("errors") or []
            first = errors[0] if errors else {}
            raise EmailRoutingError(
                first.get("message", f"HTTP {resp.status_code}"),
                status_code=resp.status_code,
                error_code=str(first.get("code", "UNKNOWN")),
            )
        return data.get("result") or {}

    def ensure_destination_address(self, email: str) -> None:
        """Register ``email`` as a forwarding destination. Already registered is fine."""
        with self._client() as client:
            resp = client.post(
                f"/accounts/{self.account_id}/email/routing/addresses",
                json={"email": email},
            )
        if resp.status_code == 409:
            logger.info("Destination address %s already registered", email)
            return
        self._handle_response(resp)
        logger.info("Registered destination address %s", email)

    def create_routing_rule(self, company_email: str, personal_email: str) -> str:
        """Forward ``company_email`` to ``personal_email``; returns the rule id."""
        payload = {
            "name": f"Forward {company_email}",
            "enabled": True,
            "matchers": [{"type": "literal", "field": "to", "value": company_email}],
            "actions": [{"type": "forward", "value": [personal_email]}],
        }
        with self._client() as client:
            resp = client.post(
                f"/zones/{self.zone_id}/email/routing/rules",
                json=payload,
            )
        result = self._handle_response(resp)
        rule_id = str(result.get("id") or result.get("tag") or "")
        logger.info("Created routing rule %s: %s -> %s", rule_id, company_email, personal_email)
        return rule_id
