"""
Database models.

Importing this package registers every table on Base.metadata.
"""

from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import (
    IncomeCategory,
    PaymentMethod,
    PayoutMethod,
    PayoutPriority,
    PayoutStatus,
    PlanCategory,
    PlanStatus,
    RoiFrequency,
    SettingCategory,
    SettingValueType,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from mlm_ledger.models.payout import Payout
from mlm_ledger.models.plan import Plan
from mlm_ledger.models.setting import Setting
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.models.user import User
from mlm_ledger.models.wallet import Wallet, WithdrawalEligibility

__all__ = [
    "Base",
    "IncomeCategory",
    "PaymentMethod",
    "Payout",
    "PayoutMethod",
    "PayoutPriority",
    "PayoutStatus",
    "Plan",
    "PlanCategory",
    "PlanStatus",
    "RoiFrequency",
    "Setting",
    "SettingCategory",
    "SettingValueType",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserRole",
    "Wallet",
    "WithdrawalEligibility",
]
