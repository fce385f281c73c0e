"""
Payout query module.

Handles payout history, the admin queue and reporting.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.payout import Payout
from mlm_ledger.repositories.payout_repository import PayoutRepository
from mlm_ledger.services.access import (
    Principal,
    require_admin,
    require_owner_or_admin,
)
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import NotFound


class PayoutQueryService:
    """Handles payout queries and history."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout query service."""
        self.session = session
        self.payout_repo = PayoutRepository(session)

    async def get_payout(self, principal: Principal, payout_id: int) -> Payout:
        """Single payout visible to its owner or an admin."""
        payout = await self.payout_repo.get_by_id(payout_id)
        if payout is None:
            raise NotFound("Payout", payout_id=payout_id)
        require_owner_or_admin(principal, payout.user_id, "view payout")
        return payout

    async def get_user_payouts(
        self,
        principal: Principal,
        user_id: int,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payout]:
        """User's payouts, newest first."""
        require_owner_or_admin(principal, user_id, "view payouts")
        return await self.payout_repo.get_user_payouts(user_id, status, limit, offset)

    async def get_pending_payouts(
        self, principal: Principal, limit: int = 100
    ) -> list[Payout]:
        """Admin queue: priority desc, oldest first."""
        require_admin(principal, "view payout queue")
        return await self.payout_repo.get_pending_payouts(limit)

    async def get_stats(
        self,
        principal: Principal,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Count and amount totals per status."""
        require_admin(principal, "view payout stats")
        return await self.payout_repo.get_stats_by_status(start, end)

    async def get_daily_summary(
        self, principal: Principal, day: date | None = None
    ) -> dict[str, Any]:
        """Requests and completions for one UTC day (today by default)."""
        require_admin(principal, "view payout summary")
        return await self.payout_repo.get_daily_summary(day or utc_now().date())
