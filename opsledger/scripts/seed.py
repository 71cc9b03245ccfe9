"""Seed the database with default accounts, ledger categories and opening balances.

Usage:
    python -m opsledger.scripts.seed
"""

from __future__ import annotations

from opsledger.app.core.database import Base, SessionLocal, engine
from opsledger.app.models.all import Account, AccountType, Category, FlowType, OpeningBalance
from opsledger.app.services.balance import OPENING_BALANCE_ACCOUNT

# name, type, currency, opening balance in cents
ACCOUNTS: list[tuple[str, AccountType, str, int]] = [
    ("Petty Cash", AccountType.CASH, "CNY", 500000),
    ("Operating Account", AccountType.BANK, "CNY", 10000000),
    ("USD Account", AccountType.BANK, "USD", 0),
]

CATEGORIES: list[tuple[str, FlowType]] = [
    # Income
    ("Asset Disposal", FlowType.INCOME),
    ("Transfer In", FlowType.INCOME),
    ("Other Income", FlowType.INCOME),
    # Expense
    ("Fixed Asset Purchase", FlowType.EXPENSE),
    ("Rent", FlowType.EXPENSE),
    ("Transfer Out", FlowType.EXPENSE),
    ("Other Expense", FlowType.EXPENSE),
]


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # ── Accounts & opening balances ────────────────────────────────
        for name, account_type, currency, opening in ACCOUNTS:
            account = db.query(Account).filter_by(name=name).first()
            if account is None:
                account = Account(name=name, account_type=account_type, currency=currency)
                db.add(account)
                db.flush()
                print(f"Created account {name} ({currency})")

            ob = (
                db.query(OpeningBalance)
                .filter_by(type=OPENING_BALANCE_ACCOUNT, ref_id=str(account.id))
                .first()
            )
            if ob is None:
                db.add(
                    OpeningBalance(
                        type=OPENING_BALANCE_ACCOUNT,
                        ref_id=str(account.id),
                        amount_cents=opening,
                    )
                )
                print(f"Set opening balance of {name} to {opening}")

        # ── Ledger categories ──────────────────────────────────────────
        for name, kind in CATEGORIES:
            if not db.query(Category).filter_by(name=name, kind=kind).first():
                db.add(Category(name=name, kind=kind))
                print(f"Created {kind.value} category: {name}")

        db.commit()
        print("Seed complete.")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
