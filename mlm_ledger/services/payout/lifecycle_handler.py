"""
Payout lifecycle handling module.

Admin-side transitions of the payout state machine. The wallet
reservation follows the status: released on reject, fail and complete,
re-acquired on retry. Settlement debits the wallet exactly once, on the
processing -> completed edge.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    MAX_ADMIN_NOTES_LENGTH,
    MAX_REJECTION_REASON_LENGTH,
    SETTING_PAYOUT_MAX_RETRIES,
)
from mlm_ledger.config.settings import settings
from mlm_ledger.models.enums import TransactionType
from mlm_ledger.models.payout import Payout
from mlm_ledger.repositories.payout_repository import PayoutRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.access import Principal, require_admin
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.services.settings_service import SettingsService
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import InvalidRequest, NotFound


class PayoutLifecycleHandler(BaseService):
    """Handles payout approval, processing, settlement and failure."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize payout lifecycle handler.

        Args:
            session: Database session
        """
        super().__init__(session)
        self.payout_repo = PayoutRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.ledger = LedgerService(session)
        self.settings_service = SettingsService(session)

    async def _lock(self, payout_id: int) -> Payout:
        payout = await self.payout_repo.lock(payout_id)
        if payout is None:
            raise NotFound("Payout", payout_id=payout_id)
        return payout

    def _log(self, message: str, payout: Payout, principal: Principal) -> None:
        self.logger.info(
            message,
            extra={
                "payout_id": payout.payout_id,
                "user_id": payout.user_id,
                "amount": str(payout.amount),
                "status": payout.status,
                "admin_id": principal.user_id,
            },
        )

    @transaction
    async def approve(
        self, principal: Principal, payout_id: int, notes: str | None = None
    ) -> Payout:
        """pending -> approved."""
        require_admin(principal, "approve payouts")
        if notes and len(notes) > MAX_ADMIN_NOTES_LENGTH:
            raise InvalidRequest("Admin notes are too long", field="notes")

        payout = await self._lock(payout_id)
        payout.approve(principal.user_id, notes)
        await self.session.flush()

        self._log("Payout approved", payout, principal)
        return payout

    @transaction
    async def reject(
        self,
        principal: Principal,
        payout_id: int,
        reason: str,
        notes: str | None = None,
    ) -> Payout:
        """
        pending -> rejected; releases the reservation.

        Raises:
            InvalidRequest: If reason is empty or too long
        """
        require_admin(principal, "reject payouts")
        if reason and len(reason) > MAX_REJECTION_REASON_LENGTH:
            raise InvalidRequest("Rejection reason is too long", field="reason")

        payout = await self._lock(payout_id)
        payout.reject(principal.user_id, reason, notes)
        wallet = await self.wallet_repo.lock_by_user_id(payout.user_id)
        wallet.release(payout.amount)
        await self.session.flush()

        self._log("Payout rejected", payout, principal)
        return payout

    @transaction
    async def mark_processing(
        self,
        principal: Principal,
        payout_id: int,
        external_reference: str | None = None,
    ) -> Payout:
        """approved -> processing."""
        require_admin(principal, "process payouts")
        payout = await self._lock(payout_id)
        payout.mark_processing(principal.user_id, external_reference)
        await self.session.flush()

        self._log("Payout processing", payout, principal)
        return payout

    @transaction
    async def mark_completed(
        self,
        principal: Principal,
        payout_id: int,
        external_reference: str | None = None,
        now: datetime | None = None,
    ) -> Payout:
        """
        processing -> completed; settles the withdrawal.

        Releases the reservation, deducts the amount proportionally across
        income categories, records a completed withdrawal transaction and
        bumps the withdrawal counters.
        """
        require_admin(principal, "complete payouts")
        now = now or utc_now()
        payout = await self._lock(payout_id)
        payout.mark_completed(external_reference, now)

        wallet = await self.wallet_repo.lock_by_user_id(payout.user_id)
        wallet.release(payout.amount)

        tx = await self.ledger.post_debit(
            payout.user_id,
            payout.amount,
            TransactionType.WITHDRAWAL,
            f"Payout {payout.payout_id} via {payout.payment_method}",
            processed_by=principal.user_id,
            payment_details=payout.payment_details,
            related_transaction_id=payout.payout_id,
            now=now,
        )
        wallet.record_withdrawal(payout.amount, now)
        payout.transaction_id = tx.transaction_id
        await self.session.flush()

        self._log("Payout completed", payout, principal)
        return payout

    @transaction
    async def mark_failed(
        self,
        principal: Principal,
        payout_id: int,
        reason: str | None = None,
    ) -> Payout:
        """processing -> failed; counts the failure and releases the reservation."""
        require_admin(principal, "fail payouts")
        payout = await self._lock(payout_id)
        payout.mark_failed(reason)
        wallet = await self.wallet_repo.lock_by_user_id(payout.user_id)
        wallet.release(payout.amount)
        await self.session.flush()

        self._log("Payout failed", payout, principal)
        return payout

    @transaction
    async def retry(self, principal: Principal, payout_id: int) -> Payout:
        """
        failed -> processing; re-reserves the amount.

        Raises:
            InvalidTransition: Not failed or retries exhausted
            InsufficientBalance: Funds no longer available
        """
        require_admin(principal, "retry payouts")
        max_retries = await self.settings_service.get_int(
            *SETTING_PAYOUT_MAX_RETRIES, settings.payout_max_retries
        )
        payout = await self._lock(payout_id)
        payout.retry(max_retries)
        wallet = await self.wallet_repo.lock_by_user_id(payout.user_id)
        wallet.reserve(payout.amount)
        await self.session.flush()

        self._log("Payout retried", payout, principal)
        return payout
