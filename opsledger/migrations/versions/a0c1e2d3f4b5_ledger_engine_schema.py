"""Ledger engine schema: accounts, cash flows, balance snapshots, assets,
rentals, employees and change logs.

Revision ID: a0c1e2d3f4b5
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "a0c1e2d3f4b5"
down_revision: Union[str, None] = None
branch_labels: Union[str, None] = None
depends_on: Union[str, None] = None

# Shared by categories, cash_flows and account_transactions
flow_type = postgresql.ENUM("INCOME", "EXPENSE", name="flowtype", create_type=False)


def upgrade() -> None:
    postgresql.ENUM("INCOME", "EXPENSE", name="flowtype").create(op.get_bind(), checkfirst=True)

    # ─── Accounts ────────────────────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "account_type",
            sa.Enum("CASH", "BANK", "WALLET", "OTHER", name="accounttype"),
            nullable=False,
            server_default="BANK",
        ),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("account_number", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_accounts_currency", "accounts", ["currency"])

    op.create_table(
        "opening_balances",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("ref_id", sa.String(36), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("as_of_date", sa.Date(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("type", "ref_id", name="uq_opening_balances_type_ref"),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kind", flow_type, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    # ─── Ledger ──────────────────────────────────────────────────────────────
    op.create_table(
        "cash_flows",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("voucher_no", sa.String(30), nullable=False),
        sa.Column("biz_date", sa.Date(), nullable=False),
        sa.Column("flow_type", flow_type, nullable=False),
        sa.Column("account_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("category_id", sa.Uuid(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("counterparty", sa.String(255), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("site_id", sa.Uuid(), nullable=True),
        sa.Column("source_type", sa.String(50), nullable=True),
        sa.Column("source_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("biz_date", "voucher_no", name="uq_cash_flows_biz_date_voucher_no"),
        sa.CheckConstraint("amount_cents > 0", name="ck_cash_flows_amount_positive"),
    )
    op.create_index(
        "ix_cash_flows_account_date", "cash_flows", ["account_id", "biz_date", "created_at"]
    )
    op.create_index("ix_cash_flows_biz_date", "cash_flows", ["biz_date"])
    op.create_index("ix_cash_flows_source", "cash_flows", ["source_type", "source_id"])

    op.create_table(
        "account_transactions",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("account_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("flow_id", sa.Uuid(), sa.ForeignKey("cash_flows.id"), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("transaction_type", flow_type, nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("balance_before_cents", sa.BigInteger(), nullable=False),
        sa.Column("balance_after_cents", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("flow_id", name="uq_account_transactions_flow"),
    )
    op.create_index(
        "ix_account_transactions_account_date",
        "account_transactions",
        ["account_id", "transaction_date", "created_at"],
    )

    op.create_table(
        "account_transfers",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("from_account_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("to_account_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("from_currency", sa.String(3), nullable=False),
        sa.Column("to_currency", sa.String(3), nullable=False),
        sa.Column("from_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("to_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(precision=20, scale=8), nullable=True),
        sa.Column("from_flow_id", sa.Uuid(), sa.ForeignKey("cash_flows.id"), nullable=False),
        sa.Column("to_flow_id", sa.Uuid(), sa.ForeignKey("cash_flows.id"), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_account_transfers_date", "account_transfers", ["transfer_date"])

    # ─── Employees & assets ──────────────────────────────────────────────────
    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("personal_email", sa.String(255), nullable=False, unique=True),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("org_department_id", sa.Uuid(), nullable=True),
        sa.Column("position_id", sa.Uuid(), nullable=True),
        sa.Column("join_date", sa.Date(), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "status",
            sa.Enum("PROBATION", "REGULAR", "RESIGNED", name="employeestatus"),
            nullable=False,
            server_default="PROBATION",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_employees_department", "employees", ["department_id"])

    op.create_table(
        "fixed_assets",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("asset_code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("purchase_price_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("vendor_name", sa.String(255), nullable=True),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("site_id", sa.Uuid(), nullable=True),
        sa.Column("custodian", sa.String(255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "IN_USE", "IDLE", "MAINTENANCE", "SCRAPPED", "SOLD",
                name="assetstatus",
            ),
            nullable=False,
            server_default="IN_USE",
        ),
        sa.Column("current_value_cents", sa.BigInteger(), nullable=True),
        sa.Column("sale_date", sa.Date(), nullable=True),
        sa.Column("sale_price_cents", sa.BigInteger(), nullable=True),
        sa.Column("sale_buyer", sa.String(255), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_fixed_assets_status", "fixed_assets", ["status"])

    op.create_table(
        "fixed_asset_allocations",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("asset_id", sa.Uuid(), sa.ForeignKey("fixed_assets.id"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("allocation_date", sa.Date(), nullable=False),
        sa.Column(
            "allocation_type",
            sa.String(50),
            nullable=False,
            server_default="employee_onboarding",
        ),
        sa.Column("return_date", sa.Date(), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_asset_allocations_asset", "fixed_asset_allocations", ["asset_id"])
    op.create_index("ix_asset_allocations_employee", "fixed_asset_allocations", ["employee_id"])

    # ─── Rentals ─────────────────────────────────────────────────────────────
    op.create_table(
        "rental_properties",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("property_code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("property_type", sa.String(30), nullable=False, server_default="office"),
        sa.Column(
            "rent_type",
            sa.Enum("MONTHLY", "YEARLY", name="renttype"),
            nullable=False,
            server_default="MONTHLY",
        ),
        sa.Column("monthly_rent_cents", sa.BigInteger(), nullable=True),
        sa.Column("yearly_rent_cents", sa.BigInteger(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("payment_period_months", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("payment_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("landlord_name", sa.String(255), nullable=True),
        sa.Column("lease_start_date", sa.Date(), nullable=True),
        sa.Column("lease_end_date", sa.Date(), nullable=True),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "INACTIVE", name="propertystatus"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "rental_payments",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column(
            "property_id", sa.Uuid(), sa.ForeignKey("rental_properties.id"), nullable=False
        ),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("account_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("category_id", sa.Uuid(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("flow_id", sa.Uuid(), sa.ForeignKey("cash_flows.id"), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "property_id", "year", "month", name="uq_rental_payments_property_period"
        ),
    )

    op.create_table(
        "rental_payable_bills",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column(
            "property_id", sa.Uuid(), sa.ForeignKey("rental_properties.id"), nullable=False
        ),
        sa.Column("bill_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column(
            "status",
            sa.Enum("UNPAID", "PAID", name="billstatus"),
            nullable=False,
            server_default="UNPAID",
        ),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column(
            "paid_payment_id", sa.Uuid(), sa.ForeignKey("rental_payments.id"), nullable=True
        ),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "property_id", "year", "month", name="uq_rental_bills_property_period"
        ),
    )
    op.create_index(
        "ix_rental_bills_status_due", "rental_payable_bills", ["status", "due_date"]
    )

    # ─── Change logs ─────────────────────────────────────────────────────────
    op.create_table(
        "change_logs",
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("change_type", sa.String(50), nullable=False),
        sa.Column("change_date", sa.Date(), nullable=False),
        sa.Column("changes", postgresql.JSONB(), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_change_logs_entity", "change_logs", ["entity_id", "created_at"])
    op.create_index("ix_change_logs_entity_type", "change_logs", ["entity_type"])


def downgrade() -> None:
    op.drop_table("change_logs")
    op.drop_table("rental_payable_bills")
    op.drop_table("rental_payments")
    op.drop_table("rental_properties")
    op.drop_table("fixed_asset_allocations")
    op.drop_table("fixed_assets")
    op.drop_table("employees")
    op.drop_table("account_transfers")
    op.drop_table("account_transactions")
    op.drop_table("cash_flows")
    op.drop_table("categories")
    op.drop_table("opening_balances")
    op.drop_table("accounts")

    for enum_name in (
        "billstatus",
        "propertystatus",
        "renttype",
        "assetstatus",
        "employeestatus",
        "accounttype",
        "flowtype",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
