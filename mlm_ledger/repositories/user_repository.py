"""
User repository.

Data access layer for User model, including sponsor tree queries.
"""

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.user import User
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.utils.exceptions import NotFound


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_referral_code(
        self, referral_code: str
    ) -> User | None:
        """
        Get user by referral code.

        Args:
            referral_code: Referral code (any case)

        Returns:
            User or None
        """
        if not referral_code:
            return None
        return await self.get_by(referral_code=referral_code.strip().upper())

    async def get_by_username(self, username: str) -> User | None:
        """
        Get user by username (case-insensitive).

        Args:
            username: Username

        Returns:
            User or None
        """
        if not username:
            return None
        stmt = select(User).where(func.lower(User.username) == username.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by normalized email."""
        return await self.get_by(email=email.strip().lower())

    async def get_sponsor_ref(self, user_id: int) -> int | None:
        """
        Get sponsor id of a user without loading the row.

        Args:
            user_id: User ID

        Returns:
            Sponsor ID, None for roots
        """
        stmt = select(User.sponsor_id).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_direct_referrals(self, user_id: int) -> list[User]:
        """Users sponsored directly by user_id, oldest first."""
        stmt = (
            select(User)
            .where(User.sponsor_id == user_id)
            .order_by(User.created_at, User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_referrals_of(self, user_ids: list[int]) -> list[User]:
        """Users sponsored by any of user_ids."""
        if not user_ids:
            return []
        stmt = (
            select(User)
            .where(User.sponsor_id.in_(user_ids))
            .order_by(User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def increment_team_size(self, user_ids: list[int]) -> int:
        """
        Atomically add one to total_team_size of every listed user.

        Args:
            user_ids: Ancestor IDs

        Returns:
            Number of rows updated
        """
        if not user_ids:
            return 0
        stmt = (
            update(User)
            .where(User.id.in_(user_ids))
            .values(total_team_size=User.total_team_size + 1)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def increment_direct_referrals(self, user_id: int) -> None:
        """Atomically add one to direct_referral_count."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(direct_referral_count=User.direct_referral_count + 1)
        )
        await self.session.execute(stmt)

    async def get_plan_holders(self, limit: int | None = None) -> list[User]:
        """Active users currently holding a plan."""
        stmt = (
            select(User)
            .where(User.current_plan_id.is_not(None), User.is_active.is_(True))
            .order_by(User.id)
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_earnings(self, user_id: int, amount: Decimal) -> None:
        """Atomically add a credited amount to total_earnings."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(total_earnings=User.total_earnings + amount)
        )
        await self.session.execute(stmt)

    async def lock(self, user_id: int) -> User:
        """
        Get user with a row lock.

        Raises:
            NotFound: If user does not exist
        """
        user = await self.get_for_update(id=user_id)
        if user is None:
            raise NotFound("User", user_id=user_id)
        return user
