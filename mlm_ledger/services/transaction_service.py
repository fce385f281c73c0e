"""
Transaction service.

Record store for monetary events: creation, status transitions and
reporting queries. Wallet effects are delegated to LedgerService so they
are applied exactly once, at the pending -> completed edge.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.enums import TransactionStatus, TransactionType
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.repositories.transaction_repository import TransactionRepository
from mlm_ledger.services.access import (
    Principal,
    require_admin,
    require_owner_or_admin,
)
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.utils.exceptions import InvalidRequest, NotFound
from mlm_ledger.utils.identifiers import generate_transaction_id
from mlm_ledger.utils.money import non_negative_money


class TransactionService(BaseService):
    """Create, transition and query transactions."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.transaction_repo = TransactionRepository(session)
        self.ledger = LedgerService(session)

    async def _lock(self, transaction_id: str) -> Transaction:
        tx = await self.transaction_repo.lock_by_reference(transaction_id)
        if tx is None:
            raise NotFound("Transaction", transaction_id=transaction_id)
        return tx

    @transaction
    async def create(
        self,
        principal: Principal,
        user_id: int,
        type: str | TransactionType,
        amount: Any,
        description: str,
        status: str | TransactionStatus = TransactionStatus.PENDING,
        **fields: Any,
    ) -> Transaction:
        """
        Create a transaction record.

        A record created as completed is settled immediately so its wallet
        effect is applied in the same unit.

        Args:
            principal: Acting admin
            user_id: Owner ID
            type: Transaction type
            amount: Amount >= 0
            description: Human-readable description
            status: pending or completed
            **fields: Remaining Transaction columns (transaction_id optional)

        Returns:
            Created transaction

        Raises:
            AccessDenied: If principal is not an admin
            InvalidAmount: If amount < 0
            InvalidRequest: If type or status is unknown
            WithdrawalNotEligible: Completed debit on a frozen or inactive wallet
        """
        require_admin(principal, "create transactions")

        type_value = type.value if isinstance(type, TransactionType) else type
        if type_value not in {t.value for t in TransactionType}:
            raise InvalidRequest(f"Unknown transaction type: {type_value}", type=type_value)
        status_value = status.value if isinstance(status, TransactionStatus) else status
        if status_value not in (
            TransactionStatus.PENDING.value,
            TransactionStatus.COMPLETED.value,
        ):
            raise InvalidRequest(
                "Transactions are created pending or completed", status=status_value
            )

        amount = non_negative_money(amount)
        if status_value == TransactionStatus.COMPLETED.value:
            tx = await self.ledger.post_transaction(
                user_id,
                type_value,
                amount,
                description,
                processed_by=principal.user_id,
                **fields,
            )
        else:
            tx = Transaction(
                transaction_id=fields.pop("transaction_id", None)
                or generate_transaction_id(),
                user_id=user_id,
                type=type_value,
                amount=amount,
                description=description,
                **fields,
            )
            self.session.add(tx)
            await self.session.flush()

        self.logger.info(
            "Transaction created",
            extra={
                "transaction_id": tx.transaction_id,
                "user_id": user_id,
                "type": type_value,
                "amount": str(amount),
                "status": tx.status,
            },
        )
        return tx

    @transaction
    async def mark_completed(
        self, principal: Principal, transaction_id: str
    ) -> Transaction:
        """
        pending -> completed, applying the wallet effect on the edge.

        Re-completing refreshes timestamps only.

        Raises:
            AccessDenied: If principal is not an admin
            NotFound: If the transaction does not exist
            InvalidTransition: From failed or cancelled
        """
        require_admin(principal, "complete transactions")
        tx = await self._lock(transaction_id)
        applied = await self.ledger.settle(tx, processed_by=principal.user_id)

        self.logger.info(
            "Transaction completed",
            extra={
                "transaction_id": transaction_id,
                "effect_applied": applied,
                "admin_id": principal.user_id,
            },
        )
        return tx

    @transaction
    async def mark_failed(
        self, principal: Principal, transaction_id: str, reason: str
    ) -> Transaction:
        """
        pending -> failed; no balance effect.

        Raises:
            InvalidRequest: If reason is empty
            InvalidTransition: Unless currently pending
        """
        require_admin(principal, "fail transactions")
        if not reason or not reason.strip():
            raise InvalidRequest("Failure reason is required", field="reason")

        tx = await self._lock(transaction_id)
        tx.mark_failed(reason.strip(), processed_by=principal.user_id)
        await self.session.flush()

        self.logger.info(
            "Transaction failed",
            extra={"transaction_id": transaction_id, "reason": reason},
        )
        return tx

    @transaction
    async def cancel(
        self, principal: Principal, transaction_id: str, reason: str | None = None
    ) -> Transaction:
        """pending -> cancelled; owner or admin."""
        tx = await self._lock(transaction_id)
        require_owner_or_admin(principal, tx.user_id, "cancel transaction")
        tx.cancel(reason)
        await self.session.flush()

        self.logger.info(
            "Transaction cancelled",
            extra={"transaction_id": transaction_id, "user_id": principal.user_id},
        )
        return tx

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_transaction(
        self, principal: Principal, transaction_id: str
    ) -> Transaction:
        """Single transaction visible to its owner or an admin."""
        tx = await self.transaction_repo.get_by_reference(transaction_id)
        if tx is None:
            raise NotFound("Transaction", transaction_id=transaction_id)
        require_owner_or_admin(principal, tx.user_id, "view transaction")
        return tx

    async def get_user_transactions(
        self,
        principal: Principal,
        user_id: int,
        type: str | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """
        Page of a user's transactions, newest first.

        Returns:
            {"items", "total", "limit", "offset"}
        """
        require_owner_or_admin(principal, user_id, "view transactions")
        items = await self.transaction_repo.get_user_transactions(
            user_id, type, status, start, end, limit, offset
        )
        total = await self.transaction_repo.count_user_transactions(
            user_id, type, status, start, end
        )
        return {"items": items, "total": total, "limit": limit, "offset": offset}

    async def get_pending(
        self, principal: Principal, type: str | None = None, limit: int = 100
    ) -> list[Transaction]:
        """Pending transactions, oldest first (admin)."""
        require_admin(principal, "view pending transactions")
        return await self.transaction_repo.get_pending(type, limit)

    async def get_stats(
        self,
        principal: Principal,
        start: datetime | None = None,
        end: datetime | None = None,
        user_id: int | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Completed totals grouped by type; global stats are admin-only."""
        if user_id is None:
            require_admin(principal, "view transaction stats")
        else:
            require_owner_or_admin(principal, user_id, "view transaction stats")
        return await self.transaction_repo.get_stats_by_type(start, end, user_id)

    async def sum_completed_by_category(self, user_id: int) -> dict[str, Decimal]:
        """Completed credits per income category."""
        return await self.transaction_repo.sum_completed_by_category(user_id)
