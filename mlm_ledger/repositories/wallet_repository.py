"""
Wallet repository.

Data access layer for Wallet model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.wallet import Wallet
from mlm_ledger.repositories.base import BaseRepository
from mlm_ledger.utils.exceptions import NotFound


class WalletRepository(BaseRepository[Wallet]):
    """Wallet repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet repository."""
        super().__init__(Wallet, session)

    async def get_by_user_id(self, user_id: int) -> Wallet | None:
        """Get wallet of a user (no lock)."""
        return await self.get_by(user_id=user_id)

    async def lock_by_user_id(self, user_id: int) -> Wallet:
        """
        Get wallet of a user with a row lock.

        All balance mutations go through this so concurrent writers on
        the same wallet are serialized.

        Args:
            user_id: Owner ID

        Returns:
            Locked wallet

        Raises:
            NotFound: If user has no wallet
        """
        wallet = await self.get_for_update(user_id=user_id)
        if wallet is None:
            raise NotFound("Wallet", user_id=user_id)
        return wallet

    async def get_all_user_ids(self) -> list[int]:
        """IDs of all wallet owners."""
        result = await self.session.execute(
            select(Wallet.user_id).order_by(Wallet.user_id)
        )
        return list(result.scalars().all())
