"""
Transaction repository.

Data access layer for Transaction model, including the aggregates the
ledger is reconciled against.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import ZERO
from mlm_ledger.models.enums import TransactionStatus
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Transaction repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transaction repository."""
        super().__init__(Transaction, session)

    async def get_by_reference(self, transaction_id: str) -> Transaction | None:
        """Get transaction by its human-readable reference."""
        return await self.get_by(transaction_id=transaction_id)

    async def lock_by_reference(self, transaction_id: str) -> Transaction | None:
        """Get transaction by reference with a row lock."""
        return await self.get_for_update(transaction_id=transaction_id)

    async def get_user_transactions(
        self,
        user_id: int,
        type: str | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        Get user's transactions, newest first.

        Args:
            user_id: Owner ID
            type: Optional transaction type filter
            status: Optional status filter
            start: Created at or after
            end: Created before
            limit: Max results
            offset: Results to skip

        Returns:
            List of transactions
        """
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        stmt = self._apply_filters(stmt, type, status, start, end)
        stmt = (
            stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_user_transactions(
        self,
        user_id: int,
        type: str | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> int:
        """Count user's transactions matching the filters."""
        stmt = select(func.count(Transaction.id)).where(
            Transaction.user_id == user_id
        )
        stmt = self._apply_filters(stmt, type, status, start, end)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_pending(
        self, type: str | None = None, limit: int = 100
    ) -> list[Transaction]:
        """Pending transactions, oldest first."""
        stmt = select(Transaction).where(
            Transaction.status == TransactionStatus.PENDING.value
        )
        if type:
            stmt = stmt.where(Transaction.type == type)
        stmt = stmt.order_by(Transaction.created_at, Transaction.id).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stats_by_type(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        user_id: int | None = None,
    ) -> dict[str, dict[str, Any]]:
        """
        Aggregate completed transactions by type.

        Args:
            start: Created at or after
            end: Created before
            user_id: Optional owner filter

        Returns:
            {type: {"total_amount", "count", "avg_amount"}}
        """
        stmt = select(
            Transaction.type,
            func.coalesce(func.sum(Transaction.amount), 0),
            func.count(Transaction.id),
        ).where(Transaction.status == TransactionStatus.COMPLETED.value)
        stmt = self._apply_filters(stmt, None, None, start, end)
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        stmt = stmt.group_by(Transaction.type)

        result = await self.session.execute(stmt)
        stats: dict[str, dict[str, Any]] = {}
        for type_, total, count in result.all():
            total = Decimal(str(total))
            stats[type_] = {
                "total_amount": total,
                "count": count,
                "avg_amount": (total / count) if count else ZERO,
            }
        return stats

    async def get_completed_for_user(self, user_id: int) -> list[Transaction]:
        """All completed transactions of a user (for reconciliation)."""
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.status == TransactionStatus.COMPLETED.value,
            )
            .order_by(Transaction.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sum_completed_by_category(self, user_id: int) -> dict[str, Decimal]:
        """
        Sum completed credits per income category.

        Args:
            user_id: Owner ID

        Returns:
            {category: total credited}
        """
        totals: dict[str, Decimal] = {}
        for tx in await self.get_completed_for_user(user_id):
            category = tx.credit_category
            if category is None:
                continue
            totals[category] = totals.get(category, ZERO) + tx.amount
        return totals

    @staticmethod
    def _apply_filters(
        stmt: Any,
        type: str | None,
        status: str | None,
        start: datetime | None,
        end: datetime | None,
    ) -> Any:
        if type:
            stmt = stmt.where(Transaction.type == type)
        if status:
            stmt = stmt.where(Transaction.status == status)
        if start:
            stmt = stmt.where(Transaction.created_at >= start)
        if end:
            stmt = stmt.where(Transaction.created_at < end)
        return stmt
