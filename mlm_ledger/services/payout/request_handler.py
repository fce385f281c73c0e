"""
Payout request handling module.

Handles payout creation and user cancellation. Creating a payout
reserves the requested amount on the wallet; cancelling releases it.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    MAX_USER_NOTES_LENGTH,
    SETTING_WITHDRAWAL_FEE,
)
from mlm_ledger.config.settings import settings
from mlm_ledger.models.enums import PayoutMethod, PayoutPriority
from mlm_ledger.models.payout import Payout
from mlm_ledger.repositories.payout_repository import PayoutRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.access import Principal, require_owner
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.services.settings_service import SettingsService
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import (
    InvalidRequest,
    NotFound,
    WithdrawalNotEligible,
)
from mlm_ledger.utils.identifiers import generate_payout_id
from mlm_ledger.utils.money import percent_of, positive_money
from mlm_ledger.validators.payment_details import validate_payment_details


class PayoutRequestHandler(BaseService):
    """Handles payout request creation and cancellation."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize payout request handler.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.payout_repo = PayoutRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.settings_service = SettingsService(session)

    @transaction
    async def create_payout(
        self,
        principal: Principal,
        amount: Any,
        payment_method: str | PayoutMethod,
        payment_details: dict[str, Any] | None,
        user_notes: str | None = None,
        priority: str | PayoutPriority = PayoutPriority.NORMAL,
        now: datetime | None = None,
    ) -> Payout:
        """
        Create a payout request for the requesting user.

        Args:
            principal: Requesting user (owner of the wallet)
            amount: Gross amount to withdraw
            payment_method: bank, crypto, upi or paypal
            payment_details: Method-specific details; None uses the
                details saved on the wallet for this method
            user_notes: Optional note
            priority: Queue priority
            now: Request moment

        Returns:
            Pending payout

        Raises:
            InvalidRequest: Unknown method/priority or invalid details
            WithdrawalNotEligible: Eligibility check failed
        """
        now = now or utc_now()
        amount = positive_money(amount)

        method = (
            payment_method.value
            if isinstance(payment_method, PayoutMethod)
            else payment_method
        )
        if method not in {m.value for m in PayoutMethod}:
            raise InvalidRequest(f"Unknown payout method: {method}", field="payment_method")
        priority = priority.value if isinstance(priority, PayoutPriority) else priority
        if priority not in {p.value for p in PayoutPriority}:
            raise InvalidRequest(f"Unknown priority: {priority}", field="priority")
        if user_notes and len(user_notes) > MAX_USER_NOTES_LENGTH:
            raise InvalidRequest("Notes are too long", field="user_notes")

        if payment_details is None:
            saved = await self.wallet_repo.get_by_user_id(principal.user_id)
            payment_details = ((saved and saved.payout_details) or {}).get(method)
        is_valid, details, error = validate_payment_details(method, payment_details)
        if not is_valid:
            raise InvalidRequest(error, field="payment_details")

        wallet = await self.wallet_repo.lock_by_user_id(principal.user_id)
        eligibility = wallet.can_withdraw(amount, now)
        if not eligibility.eligible:
            raise WithdrawalNotEligible(eligibility)

        wallet.reserve(amount)

        fee_percent = await self.settings_service.get_decimal(
            *SETTING_WITHDRAWAL_FEE, settings.withdrawal_fee_percent
        )
        fee = percent_of(amount, fee_percent)

        payout = Payout(
            payout_id=generate_payout_id(now),
            user_id=principal.user_id,
            amount=amount,
            processing_fee=fee,
            net_amount=amount - fee,
            payment_method=method,
            payment_details=details,
            priority=priority,
            user_notes=user_notes,
            requested_at=now,
        )
        self.session.add(payout)
        await self.session.flush()

        self.logger.info(
            "Payout requested",
            extra={
                "payout_id": payout.payout_id,
                "user_id": principal.user_id,
                "amount": str(amount),
                "fee": str(fee),
                "method": method,
                "pending_withdrawal": str(wallet.pending_withdrawal),
            },
        )
        return payout

    @transaction
    async def cancel_payout(self, principal: Principal, payout_id: int) -> Payout:
        """
        Cancel own pending payout and release the reservation.

        Raises:
            NotFound: If the payout does not exist
            AccessDenied: If principal is not the owner
            InvalidTransition: Unless pending
        """
        payout = await self.payout_repo.lock(payout_id)
        if payout is None:
            raise NotFound("Payout", payout_id=payout_id)
        require_owner(principal, payout.user_id, "cancel payout")

        payout.cancel()
        wallet = await self.wallet_repo.lock_by_user_id(payout.user_id)
        wallet.release(payout.amount)
        await self.session.flush()

        self.logger.info(
            "Payout cancelled",
            extra={
                "payout_id": payout.payout_id,
                "user_id": payout.user_id,
                "amount": str(payout.amount),
            },
        )
        return payout
