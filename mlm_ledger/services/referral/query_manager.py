"""
Referral query management module.

Handles downline queries and team statistics.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.settings import settings
from mlm_ledger.models.user import User
from mlm_ledger.models.wallet import Wallet
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.utils.exceptions import CorruptGraph, NotFound


class ReferralQueryManager:
    """Manages referral query operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize query manager."""
        self.session = session
        self.user_repo = UserRepository(session)

    async def get_direct_referrals(self, user_id: int) -> list[User]:
        """Users sponsored directly by user_id."""
        return await self.user_repo.get_direct_referrals(user_id)

    async def get_downline_by_depth(
        self, user_id: int, max_depth: int | None = None
    ) -> dict[int, list[User]]:
        """
        Get downline grouped by depth (1 = direct referrals).

        Breadth-first, one query per level.

        Args:
            user_id: Root of the subtree
            max_depth: Deepest level to include

        Returns:
            {depth: users}, empty levels omitted

        Raises:
            CorruptGraph: If a user is reached twice
        """
        if max_depth is None:
            max_depth = settings.referral_max_depth
        visited = {user_id}
        frontier = [user_id]
        levels: dict[int, list[User]] = {}

        for depth in range(1, max_depth + 1):
            members = await self.user_repo.get_referrals_of(frontier)
            if not members:
                break

            for member in members:
                if member.id in visited:
                    raise CorruptGraph(user_id, "cycle in downline", repeated_id=member.id)
                visited.add(member.id)

            levels[depth] = members
            frontier = [member.id for member in members]

        return levels

    async def get_team_stats(self, user_id: int) -> dict[str, Any]:
        """
        Get team statistics.

        Args:
            user_id: Team root

        Returns:
            Dict with direct_referrals, total_team_size, counted_team_size,
            active_members, members_by_level, team_investment
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFound("User", user_id=user_id)

        levels = await self.get_downline_by_depth(user_id)
        member_ids = [member.id for members in levels.values() for member in members]

        team_investment = Decimal("0")
        if member_ids:
            stmt = select(func.coalesce(func.sum(Wallet.total_invested), 0)).where(
                Wallet.user_id.in_(member_ids)
            )
            team_investment = Decimal(str((await self.session.execute(stmt)).scalar()))

        return {
            "user_id": user_id,
            "direct_referrals": user.direct_referral_count,
            "total_team_size": user.total_team_size,
            "counted_team_size": len(member_ids),
            "active_members": sum(
                1 for members in levels.values() for member in members if member.is_active
            ),
            "members_by_level": {depth: len(members) for depth, members in levels.items()},
            "team_investment": team_investment,
        }
