"""
Services package.

Business logic over the repositories. Every public mutating operation is
one all-or-nothing unit of work.
"""

from mlm_ledger.services.access import Principal
from mlm_ledger.services.account_service import AccountService
from mlm_ledger.services.consistency_service import ConsistencyService
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.services.payout import (
    PayoutLifecycleHandler,
    PayoutQueryService,
    PayoutRequestHandler,
)
from mlm_ledger.services.plan import PlanService, PurchaseResult, RoiService
from mlm_ledger.services.referral import (
    CommissionDistributor,
    ReferralChainManager,
    ReferralQueryManager,
    RegistrationService,
)
from mlm_ledger.services.settings_service import SettingsService
from mlm_ledger.services.transaction_service import TransactionService


__all__ = [
    "AccountService",
    "CommissionDistributor",
    "ConsistencyService",
    "LedgerService",
    "PayoutLifecycleHandler",
    "PayoutQueryService",
    "PayoutRequestHandler",
    "PlanService",
    "Principal",
    "PurchaseResult",
    "ReferralChainManager",
    "ReferralQueryManager",
    "RegistrationService",
    "RoiService",
    "SettingsService",
    "TransactionService",
]
