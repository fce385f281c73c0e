"""
Payout repository.

Data access layer for Payout model.
"""

from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import ZERO
from mlm_ledger.models.enums import (
    OPEN_PAYOUT_STATUSES,
    PAYOUT_PRIORITY_ORDER,
    PayoutStatus,
)
from mlm_ledger.models.payout import Payout
from mlm_ledger.repositories.base import BaseRepository


class PayoutRepository(BaseRepository[Payout]):
    """Payout repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout repository."""
        super().__init__(Payout, session)

    async def get_by_reference(self, payout_id: str) -> Payout | None:
        """Get payout by its human-readable reference."""
        return await self.get_by(payout_id=payout_id)

    async def lock(self, id: int) -> Payout | None:
        """Get payout with a row lock."""
        return await self.get_for_update(id=id)

    async def get_user_payouts(
        self,
        user_id: int,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payout]:
        """User's payouts, newest first."""
        stmt = select(Payout).where(Payout.user_id == user_id)
        if status:
            stmt = stmt.where(Payout.status == status)
        stmt = (
            stmt.order_by(Payout.requested_at.desc(), Payout.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_pending_payouts(self, limit: int = 100) -> list[Payout]:
        """
        Pending payouts for the admin queue.

        Ordered by priority (urgent first) then oldest request first.
        """
        priority_rank = case(PAYOUT_PRIORITY_ORDER, value=Payout.priority, else_=0)
        stmt = (
            select(Payout)
            .where(Payout.status == PayoutStatus.PENDING.value)
            .order_by(priority_rank.desc(), Payout.requested_at.asc(), Payout.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sum_open_amount(self, user_id: int) -> Decimal:
        """
        Sum of amounts of payouts currently holding a reservation.

        Args:
            user_id: Owner ID

        Returns:
            Sum over pending, approved and processing payouts
        """
        stmt = select(func.coalesce(func.sum(Payout.amount), 0)).where(
            Payout.user_id == user_id,
            Payout.status.in_(OPEN_PAYOUT_STATUSES),
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def get_stats_by_status(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Count, amount and fee totals grouped by status."""
        stmt = select(
            Payout.status,
            func.count(Payout.id),
            func.coalesce(func.sum(Payout.amount), 0),
            func.coalesce(func.sum(Payout.processing_fee), 0),
        )
        if start:
            stmt = stmt.where(Payout.requested_at >= start)
        if end:
            stmt = stmt.where(Payout.requested_at < end)
        stmt = stmt.group_by(Payout.status)

        result = await self.session.execute(stmt)
        stats: dict[str, dict[str, Any]] = {}
        for status, count, amount, fee in result.all():
            amount = Decimal(str(amount))
            stats[status] = {
                "count": count,
                "total_amount": amount,
                "total_fee": Decimal(str(fee)),
                "avg_amount": (amount / count) if count else ZERO,
            }
        return stats

    async def get_daily_summary(self, day: date) -> dict[str, Any]:
        """
        Requests, completions and amounts for one UTC calendar day.

        Args:
            day: Calendar day

        Returns:
            Summary dict
        """
        start = datetime.combine(day, time.min, tzinfo=UTC)
        end = start + timedelta(days=1)
        stats = await self.get_stats_by_status(start=start, end=end)

        completed_stmt = select(
            func.count(Payout.id),
            func.coalesce(func.sum(Payout.net_amount), 0),
        ).where(
            Payout.status == PayoutStatus.COMPLETED.value,
            Payout.completed_at >= start,
            Payout.completed_at < end,
        )
        completed_count, completed_net = (
            await self.session.execute(completed_stmt)
        ).one()

        return {
            "date": day.isoformat(),
            "requested_count": sum(s["count"] for s in stats.values()),
            "requested_amount": sum(
                (s["total_amount"] for s in stats.values()), ZERO
            ),
            "by_status": stats,
            "completed_count": completed_count,
            "completed_net_amount": Decimal(str(completed_net)),
        }
