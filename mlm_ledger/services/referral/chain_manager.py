"""
Referral chain management module.

Walks the sponsor graph upward and maintains the team counters of
ancestors. The graph is a forest; a cycle or an over-deep chain is data
corruption and is reported, never silently truncated.
"""

from collections.abc import AsyncIterator

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.settings import settings
from mlm_ledger.models.user import User
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.utils.exceptions import CorruptGraph


class ReferralChainManager:
    """Manages referral chain operations."""

    def __init__(self, session: AsyncSession, max_depth: int | None = None) -> None:
        """Initialize chain manager."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.max_depth = (
            settings.referral_max_depth if max_depth is None else max_depth
        )

    async def find_sponsor_chain(self, user: User) -> AsyncIterator[User]:
        """
        Yield ancestors from the immediate sponsor up to the root.

        Lazy: callers that only need the first N levels stop early.

        Args:
            user: Starting user (not yielded)

        Yields:
            Sponsor users, nearest first

        Raises:
            CorruptGraph: On a cycle or when max_depth is exceeded
        """
        visited = {user.id}
        sponsor_id = user.sponsor_id
        depth = 0

        while sponsor_id is not None:
            if sponsor_id in visited:
                logger.error(
                    "Referral cycle detected",
                    extra={"user_id": user.id, "repeated_id": sponsor_id},
                )
                raise CorruptGraph(user.id, "cycle in sponsor chain", repeated_id=sponsor_id)

            depth += 1
            if depth > self.max_depth:
                logger.error(
                    "Referral chain exceeds max depth",
                    extra={"user_id": user.id, "max_depth": self.max_depth},
                )
                raise CorruptGraph(
                    user.id, "sponsor chain exceeds max depth", max_depth=self.max_depth
                )

            sponsor = await self.user_repo.get_by_id(sponsor_id)
            if sponsor is None:
                raise CorruptGraph(
                    user.id, "dangling sponsor reference", sponsor_id=sponsor_id
                )

            visited.add(sponsor_id)
            yield sponsor
            sponsor_id = sponsor.sponsor_id

    async def get_upline(self, user: User, limit: int | None = None) -> list[User]:
        """
        Materialize the sponsor chain.

        Args:
            user: Starting user
            limit: Stop after this many ancestors

        Returns:
            Ancestors, nearest first
        """
        chain = []
        async for sponsor in self.find_sponsor_chain(user):
            chain.append(sponsor)
            if limit is not None and len(chain) >= limit:
                break
        return chain

    async def increment_team_size_upline(self, new_user: User) -> list[int]:
        """
        Count a new member in every ancestor's team.

        Every ancestor gets total_team_size + 1 through one atomic UPDATE;
        the immediate sponsor also gets direct_referral_count + 1.

        Args:
            new_user: Freshly registered user

        Returns:
            IDs of updated ancestors, nearest first
        """
        if new_user.sponsor_id is None:
            return []

        ancestor_ids = [sponsor.id for sponsor in await self.get_upline(new_user)]
        await self.user_repo.increment_team_size(ancestor_ids)
        await self.user_repo.increment_direct_referrals(new_user.sponsor_id)

        logger.debug(
            "Upline team size incremented",
            extra={
                "new_user_id": new_user.id,
                "sponsor_id": new_user.sponsor_id,
                "ancestors": len(ancestor_ids),
            },
        )
        return ancestor_ids
