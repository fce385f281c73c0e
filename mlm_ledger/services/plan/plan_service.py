"""
Plan service.

Plan administration and the purchase flow. A purchase is one unit:
optional wallet debit, investment counters, plan activation, purchase
record, plan counters, direct referral bonus and level commissions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import SETTING_DIRECT_REFERRAL_BONUS
from mlm_ledger.config.settings import settings
from mlm_ledger.models.enums import PaymentMethod, PlanCategory, TransactionType
from mlm_ledger.models.plan import Plan
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.repositories.plan_repository import PlanRepository
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.access import Principal, require_admin
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.services.referral.commission_distributor import (
    CommissionDistributor,
)
from mlm_ledger.services.settings_service import SettingsService
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import InvalidRequest, NotFound
from mlm_ledger.utils.money import positive_money


# Columns maintained by the system, never set through create/update
PROTECTED_FIELDS = frozenset(
    {"id", "total_purchases", "total_revenue", "created_by", "created_at", "updated_at"}
)
EDITABLE_FIELDS = frozenset(Plan.__table__.columns.keys()) - PROTECTED_FIELDS


@dataclass
class PurchaseResult:
    """Everything recorded by one plan purchase."""

    purchase: Transaction
    direct_bonus: Transaction | None = None
    level_commissions: list[Transaction] = field(default_factory=list)


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise InvalidRequest(
            f"Unknown or read-only plan fields: {', '.join(sorted(unknown))}",
            fields=sorted(unknown),
        )
    category = fields.get("category")
    if category is not None:
        value = category.value if isinstance(category, PlanCategory) else category
        if value not in {c.value for c in PlanCategory}:
            raise InvalidRequest(f"Unknown plan category: {value}", field="category")
        fields["category"] = value


class PlanService(BaseService):
    """Plan administration and purchase."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.plan_repo = PlanRepository(session)
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.ledger = LedgerService(session)
        self.commissions = CommissionDistributor(session)
        self.settings_service = SettingsService(session)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @transaction
    async def create_plan(self, principal: Principal, **fields: Any) -> Plan:
        """
        Create a plan.

        Plans that omit direct_referral_bonus_percentage get the
        commission.direct_referral_bonus setting.

        Args:
            principal: Acting admin
            **fields: Plan columns (name, amount, roi_percentage,
                roi_duration, level_commissions, ...)

        Returns:
            Created plan

        Raises:
            AccessDenied: If principal is not an admin
            InvalidRequest: On unknown fields or a duplicate name
            InvalidLevelSequence: If level commissions are not 1..N
        """
        require_admin(principal, "create plans")
        _check_fields(fields)
        for required in ("name", "amount", "roi_percentage", "roi_duration"):
            if fields.get(required) is None:
                raise InvalidRequest(f"{required} is required", field=required)

        if await self.plan_repo.get_by_name(fields["name"]):
            raise InvalidRequest("Plan name already exists", field="name")

        if fields.get("direct_referral_bonus_percentage") is None:
            fields["direct_referral_bonus_percentage"] = (
                await self.settings_service.get_decimal(
                    *SETTING_DIRECT_REFERRAL_BONUS,
                    settings.direct_referral_bonus_percent,
                )
            )

        plan = Plan(created_by=principal.user_id, **fields)
        self.session.add(plan)
        await self.session.flush()

        self.logger.info(
            "Plan created",
            extra={
                "plan_id": plan.id,
                "name": plan.name,
                "amount": str(plan.amount),
                "levels": plan.commission_depth,
                "admin_id": principal.user_id,
            },
        )
        return plan

    @transaction
    async def update_plan(
        self, principal: Principal, plan_id: int, **fields: Any
    ) -> Plan:
        """
        Update plan fields; validation runs on assignment.

        Raises:
            AccessDenied: If principal is not an admin
            NotFound: If the plan does not exist
            InvalidRequest: On unknown or read-only fields, duplicate name
        """
        require_admin(principal, "update plans")
        _check_fields(fields)
        plan = await self.plan_repo.get_for_update(id=plan_id)
        if plan is None:
            raise NotFound("Plan", plan_id=plan_id)

        new_name = fields.get("name")
        if new_name and new_name != plan.name:
            if await self.plan_repo.get_by_name(new_name):
                raise InvalidRequest("Plan name already exists", field="name")

        for key, value in fields.items():
            setattr(plan, key, value)
        await self.session.flush()

        self.logger.info(
            "Plan updated",
            extra={
                "plan_id": plan.id,
                "fields": sorted(fields),
                "admin_id": principal.user_id,
            },
        )
        return plan

    @transaction
    async def deactivate_plan(self, principal: Principal, plan_id: int) -> Plan:
        """Stop a plan from being purchased; existing holders keep accruing."""
        require_admin(principal, "deactivate plans")
        plan = await self.plan_repo.get_for_update(id=plan_id)
        if plan is None:
            raise NotFound("Plan", plan_id=plan_id)
        plan.is_active = False
        await self.session.flush()

        self.logger.info(
            "Plan deactivated",
            extra={"plan_id": plan.id, "admin_id": principal.user_id},
        )
        return plan

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_plan(self, plan_id: int) -> Plan:
        """Get plan or raise NotFound."""
        plan = await self.plan_repo.get_by_id(plan_id)
        if plan is None:
            raise NotFound("Plan", plan_id=plan_id)
        return plan

    async def get_active_plans(self, now: datetime | None = None) -> list[Plan]:
        """Purchasable plans, priority desc then amount asc."""
        return await self.plan_repo.get_active_plans(now)

    async def get_stats(self) -> dict[str, dict[str, Any]]:
        """Plan count, purchases and revenue by category."""
        return await self.plan_repo.get_stats_by_category()

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    @transaction
    async def purchase_plan(
        self,
        principal: Principal,
        plan_id: int,
        amount: Any = None,
        pay_from_wallet: bool = False,
    ) -> PurchaseResult:
        """
        Purchase a plan for the requesting user.

        Args:
            principal: Buyer
            plan_id: Plan to buy
            amount: Price actually paid (defaults to plan amount)
            pay_from_wallet: Debit the buyer's wallet; otherwise the
                payment was settled externally

        Returns:
            PurchaseResult with the purchase record and commissions paid

        Raises:
            NotFound: If the plan does not exist
            InvalidRequest: Plan unavailable, sold out, already holding a
                plan or too few direct referrals
            InsufficientBalance: Wallet cannot cover the price
            WithdrawalNotEligible: Wallet is frozen or inactive
        """
        now = utc_now()
        user = await self.user_repo.lock(principal.user_id)
        plan = await self.plan_repo.get_for_update(id=plan_id)
        if plan is None:
            raise NotFound("Plan", plan_id=plan_id)

        if not user.is_active:
            raise InvalidRequest("User account is inactive", user_id=user.id)
        if not plan.is_purchasable(now):
            raise InvalidRequest(
                "Plan is not available for purchase", plan_id=plan.id, status=plan.status
            )
        if not plan.has_capacity():
            raise InvalidRequest("Plan is sold out", plan_id=plan.id)
        if user.current_plan_id is not None:
            raise InvalidRequest(
                "User already holds an active plan", plan_id=user.current_plan_id
            )
        if user.direct_referral_count < plan.min_referrals_required:
            raise InvalidRequest(
                f"Plan requires {plan.min_referrals_required} direct referrals",
                required=plan.min_referrals_required,
                actual=user.direct_referral_count,
            )

        price = plan.amount if amount is None else positive_money(amount)
        description = f"Purchase of {plan.name}"
        if pay_from_wallet:
            purchase = await self.ledger.post_debit(
                user.id,
                price,
                TransactionType.PLAN_PURCHASE,
                description,
                plan_id=plan.id,
                now=now,
            )
        else:
            purchase = await self.ledger.post_transaction(
                user.id,
                TransactionType.PLAN_PURCHASE,
                price,
                description,
                plan_id=plan.id,
                payment_method=PaymentMethod.CRYPTO.value,
                now=now,
            )

        wallet = await self.wallet_repo.lock_by_user_id(user.id)
        wallet.total_invested += price
        wallet.active_investment += price

        user.current_plan_id = plan.id
        user.plan_activated_at = now
        user.plan_invested_amount = price
        user.roi_days_paid = 0
        user.last_roi_at = None
        plan.increment_purchase(price)
        await self.session.flush()

        result = PurchaseResult(purchase=purchase)
        result.direct_bonus = await self.commissions.pay_direct_referral_bonus(
            user, plan, price
        )
        result.level_commissions = await self.commissions.distribute_level_commission(
            user, plan, price
        )

        self.logger.info(
            "Plan purchased",
            extra={
                "user_id": user.id,
                "plan_id": plan.id,
                "price": str(price),
                "pay_from_wallet": pay_from_wallet,
                "transaction_id": purchase.transaction_id,
                "levels_paid": len(result.level_commissions),
            },
        )
        return result
