"""Time sources used by the ledger.

``created_at`` values are always taken from :func:`utcnow` in application
code rather than from a server default, so the value a posting compares
against in the same-day balance tiebreak is exactly the value it writes.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from opsledger.app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def business_date() -> date:
    """Today's date in the configured business timezone."""
    return datetime.now(ZoneInfo(settings.BUSINESS_TIMEZONE)).date()
