"""
Plan services package.

- plan_service: Plan administration and purchase
- roi_service: Daily ROI accrual
"""

from mlm_ledger.services.plan.plan_service import PlanService, PurchaseResult
from mlm_ledger.services.plan.roi_service import RoiService


__all__ = [
    "PlanService",
    "PurchaseResult",
    "RoiService",
]
