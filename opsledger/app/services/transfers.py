from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.orm import Session

from opsledger.app.core.clock import utcnow
from opsledger.app.core.errors import NotFoundError, ValidationError
from opsledger.app.models.account import Account, FlowType
from opsledger.app.models.ledger import AccountTransfer, CashFlow
from opsledger.app.schemas.transfers import TransferCreate
from opsledger.app.services.posting import (
    EntityChange,
    LedgerLeg,
    PostingAction,
    PostingOperation,
    post,
)


def create_transfer(
    db: Session,
    payload: TransferCreate,
    actor: str | None,
) -> dict[str, Any]:
    """Move money between two accounts as an expense leg and an income leg.

    Cross-currency transfers need the received amount, given directly or
    through ``exchange_rate``.
    """
    if payload.to_account_id is None:
        raise ValidationError("Destination account is required", reason="MISSING_DESTINATION")
    if payload.to_account_id == payload.from_account_id:
        raise ValidationError("Cannot transfer to the same account", reason="SAME_ACCOUNT")

    source = db.get(Account, payload.from_account_id)
    if source is None:
        raise NotFoundError("Source account not found", reason="ACCOUNT_NOT_FOUND")
    target = db.get(Account, payload.to_account_id)
    if target is None:
        raise NotFoundError("Destination account not found", reason="ACCOUNT_NOT_FOUND")

    to_amount = payload.to_amount_cents
    if source.currency == target.currency:
        if to_amount is not None and to_amount != payload.from_amount_cents:
            raise ValidationError("Same-currency transfers must credit the amount debited")
        to_amount = payload.from_amount_cents
    elif to_amount is None:
        if payload.exchange_rate is None:
            raise ValidationError(
                f"Converting {source.currency} to {target.currency} needs "
                "to_amount_cents or exchange_rate",
                reason="MISSING_EXCHANGE_RATE",
            )
        converted = Decimal(payload.from_amount_cents) * payload.exchange_rate
        to_amount = int(converted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    transfer_id = uuid.uuid4()

    def apply(db: Session, flows: list[CashFlow]) -> list[EntityChange]:
        db.add(
            AccountTransfer(
                id=transfer_id,
                transfer_date=payload.transfer_date,
                from_account_id=source.id,
                to_account_id=target.id,
                from_currency=source.currency,
                to_currency=target.currency,
                from_amount_cents=payload.from_amount_cents,
                to_amount_cents=to_amount,
                exchange_rate=payload.exchange_rate,
                from_flow_id=flows[0].id,
                to_flow_id=flows[1].id,
                memo=payload.memo,
                created_by=actor,
                created_at=utcnow(),
            )
        )
        db.flush()
        return []

    result = post(
        db,
        PostingOperation(
            action=PostingAction.ACCOUNT_TRANSFER,
            biz_date=payload.transfer_date,
            legs=[
                LedgerLeg(
                    account_id=source.id,
                    flow_type=FlowType.EXPENSE,
                    amount_cents=payload.from_amount_cents,
                    currency=source.currency,
                    counterparty=target.name,
                    memo=payload.memo or f"Transfer to {target.name}",
                ),
                LedgerLeg(
                    account_id=target.id,
                    flow_type=FlowType.INCOME,
                    amount_cents=to_amount,
                    currency=target.currency,
                    counterparty=source.name,
                    memo=payload.memo or f"Transfer from {source.name}",
                ),
            ],
            apply=apply,
            created_by=actor,
            source_type="account_transfer",
            source_id=transfer_id,
        ),
    )
    out_leg, in_leg = result.entries
    return {
        "transfer_id": transfer_id,
        "from_flow_id": out_leg.flow_id,
        "to_flow_id": in_leg.flow_id,
        "from_voucher_no": out_leg.voucher_no,
        "to_voucher_no": in_leg.voucher_no,
    }
