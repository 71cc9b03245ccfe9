"""Daily payable-bill generation for active rental leases."""

from __future__ import annotations

import logging

from opsledger.app.workers.celery_app import celery

logger = logging.getLogger(__name__)


@celery.task(name="opsledger.app.workers.tasks.rental_bills.generate_due_rental_bills")
def generate_due_rental_bills() -> dict:
    """Create unpaid bills for leases whose next payment is within the lead time."""
    from opsledger.app.core.database import SessionLocal
    from opsledger.app.services.rental import generate_payable_bills

    db = SessionLocal()
    try:
        bills = generate_payable_bills(db, actor="system")
        return {"created": len(bills), "bill_ids": [str(b.id) for b in bills]}
    except Exception:
        logger.exception("Rental bill generation failed")
        raise
    finally:
        db.close()
