# Importing this module registers every table on ``Base.metadata``.
# Schema creation (tests, seed script) and migrations import from here.

from opsledger.app.models.account import Account, AccountType, Category, FlowType, OpeningBalance
from opsledger.app.models.asset import AssetStatus, FixedAsset, FixedAssetAllocation
from opsledger.app.models.change_log import ChangeLog
from opsledger.app.models.employee import Employee, EmployeeStatus
from opsledger.app.models.ledger import AccountTransaction, AccountTransfer, CashFlow
from opsledger.app.models.rental import (
    BillStatus,
    PropertyStatus,
    RentalPayableBill,
    RentalPayment,
    RentalProperty,
    RentType,
)

__all__ = [
    "Account",
    "AccountTransaction",
    "AccountTransfer",
    "AccountType",
    "AssetStatus",
    "BillStatus",
    "CashFlow",
    "Category",
    "ChangeLog",
    "Employee",
    "EmployeeStatus",
    "FixedAsset",
    "FixedAssetAllocation",
    "FlowType",
    "OpeningBalance",
    "PropertyStatus",
    "RentType",
    "RentalPayableBill",
    "RentalPayment",
    "RentalProperty",
]
