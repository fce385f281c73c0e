"""
ROI accrual service.

Credits the daily ROI of each plan holder, at most once per UTC calendar
day, until the plan's schedule is exhausted.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import ZERO
from mlm_ledger.models.enums import IncomeCategory, TransactionType
from mlm_ledger.models.plan import Plan
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.models.user import User
from mlm_ledger.repositories.plan_repository import PlanRepository
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.base_service import BaseService, log_operation, transaction
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.utils.datetime_utils import is_same_day, utc_now
from mlm_ledger.utils.exceptions import is_business_error


class RoiService(BaseService):
    """Daily ROI crediting."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.plan_repo = PlanRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.ledger = LedgerService(session)

    @transaction
    async def accrue_roi(
        self, user_id: int, today: datetime | None = None
    ) -> Transaction | None:
        """
        Credit one day of ROI to a plan holder.

        The final day pays the remainder so the schedule sums exactly to
        the plan's total ROI; finishing the schedule releases the active
        investment and frees the user to buy another plan.

        Args:
            user_id: Plan holder
            today: Accrual moment (defaults to now)

        Returns:
            ROI transaction, None if nothing is due
        """
        now = today or utc_now()
        user = await self.user_repo.lock(user_id)
        if user.current_plan_id is None or not user.is_active:
            return None
        if user.last_roi_at is not None and is_same_day(user.last_roi_at, now):
            return None

        plan = await self.plan_repo.get_by_id(user.current_plan_id)
        if plan is None:
            return None

        total_days = plan.total_roi_days
        if user.roi_days_paid >= total_days:
            await self._finish_schedule(user, plan)
            return None

        day = user.roi_days_paid + 1
        if day == total_days:
            amount = plan.total_roi_amount - plan.daily_roi_amount * (total_days - 1)
        else:
            amount = plan.daily_roi_amount

        tx = None
        if amount > ZERO:
            tx = await self.ledger.post_credit(
                user.id,
                IncomeCategory.ROI,
                amount,
                TransactionType.ROI_INCOME,
                f"ROI day {day}/{total_days} for {plan.name}",
                plan_id=plan.id,
                roi_percentage=plan.roi_percentage,
                roi_days=day,
                now=now,
            )

        user.roi_days_paid = day
        user.last_roi_at = now

        if day >= total_days:
            await self._finish_schedule(user, plan)
            self.logger.info(
                "ROI schedule finished",
                extra={"user_id": user.id, "plan_id": plan.id, "days": total_days},
            )

        await self.session.flush()
        return tx

    async def _finish_schedule(self, user: User, plan: Plan) -> None:
        invested = user.plan_invested_amount
        if invested is None:
            invested = plan.amount
        wallet = await self.wallet_repo.lock_by_user_id(user.id)
        wallet.active_investment = max(ZERO, wallet.active_investment - invested)
        user.current_plan_id = None
        user.plan_invested_amount = None

    @log_operation
    async def accrue_all(self, today: datetime | None = None) -> dict[str, Any]:
        """
        Run accrual for every plan holder, one unit per user.

        A failure for one user is logged and does not stop the batch.

        Returns:
            Dict with processed, credited, skipped, failed, total_amount
        """
        now = today or utc_now()
        user_ids = [user.id for user in await self.user_repo.get_plan_holders()]

        stats = {
            "processed": 0,
            "credited": 0,
            "skipped": 0,
            "failed": 0,
            "total_amount": ZERO,
        }
        for user_id in user_ids:
            stats["processed"] += 1
            try:
                tx = await self.accrue_roi(user_id, now)
            except Exception as e:
                stats["failed"] += 1
                if is_business_error(e):
                    self.logger.warning(
                        f"ROI accrual rejected for user {user_id}: {e}"
                    )
                else:
                    self.logger.exception(f"ROI accrual failed for user {user_id}")
                continue

            if tx is None:
                stats["skipped"] += 1
            else:
                stats["credited"] += 1
                stats["total_amount"] += tx.amount

        self.logger.info("ROI accrual batch finished", extra=stats)
        return stats
