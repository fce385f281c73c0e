"""
Payout services package.

This package provides the payout request state machine:
- request_handler: Request creation and user cancellation
- lifecycle_handler: Approval, rejection, processing, settlement, retries
- query_service: History, admin queue and reporting
"""

from mlm_ledger.services.payout.lifecycle_handler import PayoutLifecycleHandler
from mlm_ledger.services.payout.query_service import PayoutQueryService
from mlm_ledger.services.payout.request_handler import PayoutRequestHandler


__all__ = [
    "PayoutLifecycleHandler",
    "PayoutQueryService",
    "PayoutRequestHandler",
]
