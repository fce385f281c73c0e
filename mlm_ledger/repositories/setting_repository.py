"""
Setting repository.

Data access layer for Setting model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.setting import Setting
from mlm_ledger.repositories.base import BaseRepository


class SettingRepository(BaseRepository[Setting]):
    """Setting repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize setting repository."""
        super().__init__(Setting, session)

    async def get_setting(self, category: str, key: str) -> Setting | None:
        """Get setting by (category, key)."""
        return await self.get_by(category=category, key=key)

    async def get_by_category(
        self, category: str, active_only: bool = True
    ) -> list[Setting]:
        """Settings of a category ordered for display."""
        stmt = select(Setting).where(Setting.category == category)
        if active_only:
            stmt = stmt.where(Setting.is_active.is_(True))
        stmt = stmt.order_by(Setting.display_order, Setting.key)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_public(self) -> list[Setting]:
        """Active settings flagged public."""
        stmt = (
            select(Setting)
            .where(Setting.is_public.is_(True), Setting.is_active.is_(True))
            .order_by(Setting.category, Setting.display_order, Setting.key)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
