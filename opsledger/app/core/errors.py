"""Typed service errors.

Every service in this package raises one of these instead of returning an
error payload. The HTTP layer maps ``kind`` to a status code and never
inspects the message text.
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    BUSINESS_ERROR = "BUSINESS_ERROR"
    DUPLICATE = "DUPLICATE"
    INTERNAL = "INTERNAL"


class OpsError(Exception):
    """Base class for all service-layer failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.reason = reason
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.reason:
            payload["reason"] = self.reason
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(OpsError):
    """Missing or malformed input."""

    kind = ErrorKind.VALIDATION


class NotFoundError(OpsError):
    """A referenced account or entity does not exist."""

    kind = ErrorKind.NOT_FOUND


class BusinessRuleError(OpsError):
    """State-machine violation (inactive account, terminal status, ...)."""

    kind = ErrorKind.BUSINESS_ERROR


class DuplicateError(OpsError):
    """Uniqueness violation."""

    kind = ErrorKind.DUPLICATE


class InternalError(OpsError):
    """Unexpected storage failure or exhausted retries."""

    kind = ErrorKind.INTERNAL
