"""
Referral services package.

Contains modular services for the sponsor graph:
- chain_manager: Sponsor chain traversal and upline counters
- commission_distributor: Direct bonus and level commissions
- registration: User registration into the tree
- query_manager: Downline queries and team statistics
"""

from mlm_ledger.services.referral.chain_manager import ReferralChainManager
from mlm_ledger.services.referral.commission_distributor import (
    CommissionDistributor,
)
from mlm_ledger.services.referral.query_manager import ReferralQueryManager
from mlm_ledger.services.referral.registration import RegistrationService


__all__ = [
    "CommissionDistributor",
    "ReferralChainManager",
    "ReferralQueryManager",
    "RegistrationService",
]
