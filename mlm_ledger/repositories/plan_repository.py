"""
Plan repository.

Data access layer for Plan model.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.plan import Plan
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.utils.datetime_utils import utc_now


class PlanRepository(BaseRepository[Plan]):
    """Plan repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize plan repository."""
        super().__init__(Plan, session)

    async def get_by_name(self, name: str) -> Plan | None:
        """Get plan by unique name."""
        return await self.get_by(name=name)

    async def get_active_plans(self, now: datetime | None = None) -> list[Plan]:
        """
        Purchasable plans ordered by priority (desc) then amount (asc).

        Args:
            now: Moment to evaluate validity window at

        Returns:
            List of plans
        """
        now = now or utc_now()
        stmt = (
            select(Plan)
            .where(
                Plan.is_active.is_(True),
                Plan.is_visible.is_(True),
                Plan.valid_from <= now,
                or_(Plan.valid_until.is_(None), Plan.valid_until >= now),
            )
            .order_by(Plan.priority.desc(), Plan.amount.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stats_by_category(self) -> dict[str, dict[str, Any]]:
        """Plan count, purchases and revenue grouped by category."""
        stmt = select(
            Plan.category,
            func.count(Plan.id),
            func.coalesce(func.sum(Plan.total_purchases), 0),
            func.coalesce(func.sum(Plan.total_revenue), 0),
        ).group_by(Plan.category)
        result = await self.session.execute(stmt)
        return {
            category: {
                "plans": count,
                "total_purchases": int(purchases),
                "total_revenue": Decimal(str(revenue)),
            }
            for category, count, purchases, revenue in result.all()
        }
