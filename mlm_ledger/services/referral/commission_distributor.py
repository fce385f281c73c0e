"""
Referral commission distribution module.

Pays the direct referral bonus and multi-level commissions generated by
a plan purchase. Runs inside the caller's unit of work and never commits.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import SETTING_COMMISSION_MAX_LEVELS
from mlm_ledger.config.settings import settings
from mlm_ledger.models.enums import IncomeCategory, TransactionType
from mlm_ledger.models.plan import Plan
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.models.user import User
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.services.referral.chain_manager import ReferralChainManager
from mlm_ledger.services.settings_service import SettingsService
from mlm_ledger.utils.money import percent_of, positive_money


class CommissionDistributor:
    """Credits sponsors for purchases made in their downline."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission distributor."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.ledger = LedgerService(session)
        self.chain = ReferralChainManager(session)
        self.settings_service = SettingsService(session)

    async def get_max_levels(self) -> int:
        """Configured commission depth limit."""
        return await self.settings_service.get_int(
            *SETTING_COMMISSION_MAX_LEVELS, settings.commission_max_levels
        )

    async def distribute_level_commission(
        self, purchasing_user: User, plan: Plan, base_amount: Decimal
    ) -> list[Transaction]:
        """
        Credit level commissions up the sponsor chain.

        Level L (1 = immediate sponsor) receives base * pct(L) / 100 for
        L up to min(configured plan levels, commission.max_levels).
        Zero-percentage levels are skipped; inactive ancestors keep their
        position in the chain but receive nothing.

        Args:
            purchasing_user: Buyer
            plan: Purchased plan
            base_amount: Commission base (price paid)

        Returns:
            Level income transactions created
        """
        base_amount = positive_money(base_amount)
        depth = min(plan.commission_depth, await self.get_max_levels())
        if depth <= 0:
            return []

        paid: list[Transaction] = []
        level = 0
        async for ancestor in self.chain.find_sponsor_chain(purchasing_user):
            level += 1
            if level > depth:
                break

            commission = percent_of(base_amount, plan.get_commission_for_level(level))
            if commission <= 0:
                continue

            if not ancestor.is_active:
                logger.info(
                    "Level commission skipped for inactive sponsor",
                    extra={
                        "sponsor_id": ancestor.id,
                        "purchaser_id": purchasing_user.id,
                        "level": level,
                    },
                )
                continue

            tx = await self.ledger.post_credit(
                ancestor.id,
                IncomeCategory.LEVEL,
                commission,
                TransactionType.LEVEL_INCOME,
                f"Level {level} commission from {purchasing_user.username} "
                f"purchasing {plan.name}",
                related_user_id=purchasing_user.id,
                plan_id=plan.id,
                level=level,
            )
            paid.append(tx)

        logger.info(
            "Level commissions distributed",
            extra={
                "purchaser_id": purchasing_user.id,
                "plan_id": plan.id,
                "base_amount": str(base_amount),
                "levels_paid": len(paid),
                "total": str(sum((tx.amount for tx in paid), Decimal("0"))),
            },
        )
        return paid

    async def pay_direct_referral_bonus(
        self, purchasing_user: User, plan: Plan, base_amount: Decimal
    ) -> Transaction | None:
        """
        Credit the immediate sponsor's direct bucket.

        Uses the plan's direct_referral_bonus_percentage.

        Args:
            purchasing_user: Buyer
            plan: Purchased plan
            base_amount: Bonus base (price paid)

        Returns:
            Direct income transaction, None when nothing is owed
        """
        if purchasing_user.sponsor_id is None:
            return None

        bonus = percent_of(
            positive_money(base_amount), plan.direct_referral_bonus_percentage
        )
        if bonus <= 0:
            return None

        sponsor = await self.user_repo.get_by_id(purchasing_user.sponsor_id)
        if sponsor is None or not sponsor.is_active:
            logger.info(
                "Direct referral bonus skipped",
                extra={
                    "purchaser_id": purchasing_user.id,
                    "sponsor_id": purchasing_user.sponsor_id,
                },
            )
            return None

        tx = await self.ledger.post_credit(
            sponsor.id,
            IncomeCategory.DIRECT,
            bonus,
            TransactionType.DIRECT_INCOME,
            f"Direct referral bonus from {purchasing_user.username} "
            f"purchasing {plan.name}",
            related_user_id=purchasing_user.id,
            plan_id=plan.id,
            level=1,
        )

        logger.info(
            "Direct referral bonus paid",
            extra={
                "sponsor_id": sponsor.id,
                "purchaser_id": purchasing_user.id,
                "amount": str(bonus),
            },
        )
        return tx
