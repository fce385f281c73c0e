"""
Integration tests for registration, plan purchase, commissions and ROI.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from mlm_ledger.models import Transaction, TransactionType, User
from mlm_ledger.services.access import Principal
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.services.plan.plan_service import PlanService
from mlm_ledger.services.plan.roi_service import RoiService
from mlm_ledger.services.referral.query_manager import ReferralQueryManager
from mlm_ledger.services.referral.registration import RegistrationService
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import (
    InsufficientBalance,
    InvalidRequest,
    NotFound,
)


pytestmark = pytest.mark.integration


async def register(session, username: str, sponsor: User | None = None) -> User:
    return await RegistrationService(session).register_user(
        username=username,
        email=f"{username}@example.com",
        password="Secret123",
        full_name=username.title(),
        sponsor_code=sponsor.referral_code if sponsor else None,
    )


async def chain(make_user, length: int) -> list[User]:
    """Users where each one sponsors the next."""
    users = []
    sponsor = None
    for _ in range(length):
        sponsor = await make_user(sponsor=sponsor)
        users.append(sponsor)
    return users


class TestRegistration:
    """Test joining the sponsor tree."""

    @pytest.mark.asyncio
    async def test_root_user(self, session):
        """A user without sponsor starts at level 1 with a wallet."""
        user = await register(session, "root")

        wallet = await LedgerService(session).get_wallet(user.id)
        assert user.level == 1
        assert user.sponsor_id is None
        assert user.verify_password("Secret123") is True
        assert len(user.referral_code) == 8
        assert wallet.total_balance == Decimal("0")
        assert wallet.min_withdrawal == Decimal("10")

    @pytest.mark.asyncio
    async def test_team_sizes_along_chain(self, session):
        """Every ancestor counts every descendant once."""
        users = []
        sponsor = None
        for name in ("alpha", "bravo", "charlie", "delta", "echo"):
            sponsor = await register(session, name, sponsor)
            users.append(sponsor)

        for user in users:
            await session.refresh(user)

        assert [u.total_team_size for u in users] == [4, 3, 2, 1, 0]
        assert [u.direct_referral_count for u in users] == [1, 1, 1, 1, 0]
        assert [u.level for u in users] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_unknown_sponsor(self, session):
        with pytest.raises(NotFound):
            await RegistrationService(session).register_user(
                "orphan", "orphan@example.com", "Secret123", "Orphan",
                sponsor_code="NOPE0000",
            )

    @pytest.mark.asyncio
    async def test_duplicate_username(self, session):
        """Usernames and emails are unique."""
        await register(session, "taken")

        with pytest.raises(InvalidRequest) as exc_info:
            await RegistrationService(session).register_user(
                "taken", "other@example.com", "Secret123", "Other"
            )

        assert exc_info.value.details["field"] == "username"

    @pytest.mark.asyncio
    async def test_weak_password(self, session):
        with pytest.raises(InvalidRequest) as exc_info:
            await RegistrationService(session).register_user(
                "weakling", "weak@example.com", "password", "Weak"
            )

        assert exc_info.value.details["field"] == "password"

    @pytest.mark.asyncio
    async def test_downline_query(self, session):
        """Descendants are grouped by depth."""
        root = await register(session, "root")
        left = await register(session, "left", root)
        await register(session, "right", root)
        await register(session, "grandchild", left)

        downline = await ReferralQueryManager(session).get_downline_by_depth(root.id)

        assert [len(level) for level in downline.values()] == [2, 1]

    @pytest.mark.asyncio
    async def test_downline_depth_bound(self, session):
        """Explicit bounds, zero included, limit the walk."""
        root = await register(session, "root")
        child = await register(session, "child", root)
        await register(session, "grandchild", child)
        queries = ReferralQueryManager(session)

        assert await queries.get_downline_by_depth(root.id, max_depth=0) == {}
        assert list(await queries.get_downline_by_depth(root.id, max_depth=1)) == [1]


class TestPlanPurchase:
    """Test buying a plan."""

    @pytest.mark.asyncio
    async def test_wallet_purchase(self, session, make_user, make_plan, fund):
        """Paying from the wallet debits it and records the investment."""
        user = await make_user()
        plan = await make_plan(amount=Decimal("100"))
        await fund(user, 150)

        result = await PlanService(session).purchase_plan(
            Principal(user_id=user.id), plan.id, pay_from_wallet=True
        )

        wallet = await LedgerService(session).get_wallet(user.id)
        assert wallet.total_balance == Decimal("50")
        assert wallet.total_invested == Decimal("100")
        assert wallet.active_investment == Decimal("100")
        assert result.purchase.payment_method == "wallet"
        assert result.direct_bonus is None
        assert user.current_plan_id == plan.id
        assert plan.total_purchases == 1
        assert plan.total_revenue == Decimal("100")

    @pytest.mark.asyncio
    async def test_external_purchase_is_wallet_neutral(self, session, make_user, make_plan):
        """Externally paid purchases leave balances alone."""
        user = await make_user()
        plan = await make_plan()

        result = await PlanService(session).purchase_plan(
            Principal(user_id=user.id), plan.id
        )

        wallet = await LedgerService(session).get_wallet(user.id)
        assert wallet.total_balance == Decimal("0")
        assert wallet.active_investment == Decimal("100")
        assert result.purchase.payment_method == "crypto"
        assert result.purchase.balance_effect == Decimal("0")

    @pytest.mark.asyncio
    async def test_one_active_plan(self, session, make_user, make_plan):
        """A user cannot hold two plans."""
        user = await make_user()
        plan = await make_plan()
        principal = Principal(user_id=user.id)
        plan_id = plan.id
        await PlanService(session).purchase_plan(principal, plan_id)

        with pytest.raises(InvalidRequest):
            await PlanService(session).purchase_plan(principal, plan_id)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, session, make_user, make_plan, fund):
        """The whole purchase is rolled back."""
        user = await make_user()
        plan = await make_plan()
        await fund(user, 50)
        user_id, plan_id = user.id, plan.id

        with pytest.raises(InsufficientBalance):
            await PlanService(session).purchase_plan(
                Principal(user_id=user_id), plan_id, pay_from_wallet=True
            )

        user = await session.get(User, user_id, populate_existing=True)
        assert user.current_plan_id is None

    @pytest.mark.asyncio
    async def test_unknown_plan(self, session, make_user):
        user = await make_user()

        with pytest.raises(NotFound):
            await PlanService(session).purchase_plan(Principal(user_id=user.id), 999)

    @pytest.mark.asyncio
    async def test_referral_requirement(self, session, make_user, make_plan):
        user = await make_user()
        plan = await make_plan(min_referrals_required=2)

        with pytest.raises(InvalidRequest):
            await PlanService(session).purchase_plan(Principal(user_id=user.id), plan.id)

    @pytest.mark.asyncio
    async def test_inactive_plan(self, session, make_user, make_plan):
        user = await make_user()
        plan = await make_plan(is_active=False)

        with pytest.raises(InvalidRequest):
            await PlanService(session).purchase_plan(Principal(user_id=user.id), plan.id)


class TestCommissions:
    """Test sponsor payouts on a downline purchase."""

    @pytest.mark.asyncio
    async def test_level_commissions(self, session, make_user, make_plan):
        """Level 1 gets 10%, level 2 gets 5%, level 3 is unconfigured."""
        top, middle, sponsor, buyer = await chain(make_user, 4)
        plan = await make_plan(
            level_commissions=[{"level": 1, "percentage": 10}, {"level": 2, "percentage": 5}]
        )

        result = await PlanService(session).purchase_plan(
            Principal(user_id=buyer.id), plan.id
        )

        ledger = LedgerService(session)
        assert (await ledger.get_wallet(sponsor.id)).level_income == Decimal("10")
        assert (await ledger.get_wallet(middle.id)).level_income == Decimal("5")
        assert (await ledger.get_wallet(top.id)).level_income == Decimal("0")
        assert [tx.level for tx in result.level_commissions] == [1, 2]
        assert all(tx.related_user_id == buyer.id for tx in result.level_commissions)

    @pytest.mark.asyncio
    async def test_direct_bonus(self, session, make_user, make_plan):
        """The immediate sponsor's direct bucket gets the plan's bonus."""
        sponsor, buyer = await chain(make_user, 2)
        plan = await make_plan(direct_referral_bonus_percentage=Decimal("7"))

        result = await PlanService(session).purchase_plan(
            Principal(user_id=buyer.id), plan.id
        )

        wallet = await LedgerService(session).get_wallet(sponsor.id)
        assert wallet.direct_income == Decimal("7")
        assert result.direct_bonus.type == TransactionType.DIRECT_INCOME.value

    @pytest.mark.asyncio
    async def test_inactive_sponsor_skipped(self, session, make_user, make_plan):
        """Inactive ancestors keep their level but receive nothing."""
        top, sponsor, buyer = await chain(make_user, 3)
        sponsor.is_active = False
        await session.commit()
        plan = await make_plan(
            level_commissions=[{"level": 1, "percentage": 10}, {"level": 2, "percentage": 5}]
        )

        await PlanService(session).purchase_plan(Principal(user_id=buyer.id), plan.id)

        ledger = LedgerService(session)
        assert (await ledger.get_wallet(sponsor.id)).level_income == Decimal("0")
        assert (await ledger.get_wallet(top.id)).level_income == Decimal("5")


class TestRoiAccrual:
    """Test daily ROI crediting."""

    async def _holder(self, session, make_user, make_plan, **plan_fields):
        user = await make_user()
        plan = await make_plan(**plan_fields)
        await PlanService(session).purchase_plan(Principal(user_id=user.id), plan.id)
        return user, plan

    @pytest.mark.asyncio
    async def test_once_per_day(self, session, make_user, make_plan):
        """A second accrual on the same day does nothing."""
        user, _ = await self._holder(session, make_user, make_plan)
        service = RoiService(session)
        today = utc_now()

        first = await service.accrue_roi(user.id, today)
        second = await service.accrue_roi(user.id, today + timedelta(seconds=1))

        wallet = await LedgerService(session).get_wallet(user.id)
        assert first.amount == Decimal("1")
        assert second is None
        assert wallet.roi_income == Decimal("1")
        assert user.roi_days_paid == 1

    @pytest.mark.asyncio
    async def test_schedule_sums_exactly(self, session, make_user, make_plan):
        """10% of 100 over 3 days pays 3.33333333 twice then the remainder."""
        user, plan = await self._holder(
            session, make_user, make_plan, roi_duration=3
        )
        service = RoiService(session)
        start = utc_now()

        paid = [
            await service.accrue_roi(user.id, start + timedelta(days=day))
            for day in range(3)
        ]

        assert [tx.amount for tx in paid] == [
            Decimal("3.33333333"),
            Decimal("3.33333333"),
            Decimal("3.33333334"),
        ]
        wallet = await LedgerService(session).get_wallet(user.id)
        assert wallet.roi_income == Decimal("10")

    @pytest.mark.asyncio
    async def test_schedule_end_frees_user(self, session, make_user, make_plan):
        """After the last day the plan is released."""
        user, _ = await self._holder(session, make_user, make_plan, roi_duration=1)
        service = RoiService(session)

        await service.accrue_roi(user.id, utc_now())
        after = await service.accrue_roi(user.id, utc_now() + timedelta(days=1))

        wallet = await LedgerService(session).get_wallet(user.id)
        assert after is None
        assert user.current_plan_id is None
        assert wallet.active_investment == Decimal("0")

    @pytest.mark.asyncio
    async def test_schedule_end_releases_price_paid(self, session, make_user, make_plan):
        """A plan bought above list price releases what was invested."""
        user = await make_user()
        plan = await make_plan(roi_duration=1)
        await PlanService(session).purchase_plan(
            Principal(user_id=user.id), plan.id, amount=Decimal("150")
        )
        assert user.plan_invested_amount == Decimal("150")

        await RoiService(session).accrue_roi(user.id, utc_now())

        wallet = await LedgerService(session).get_wallet(user.id)
        assert wallet.total_invested == Decimal("150")
        assert wallet.active_investment == Decimal("0")
        assert user.plan_invested_amount is None

    @pytest.mark.asyncio
    async def test_no_plan_no_roi(self, session, make_user):
        user = await make_user()

        assert await RoiService(session).accrue_roi(user.id) is None

    @pytest.mark.asyncio
    async def test_batch(self, session, make_user, make_plan):
        """The batch credits every holder once."""
        first, plan = await self._holder(session, make_user, make_plan)
        second = await make_user()
        await PlanService(session).purchase_plan(Principal(user_id=second.id), plan.id)
        await make_user()

        stats = await RoiService(session).accrue_all()

        assert stats["credited"] == 2
        assert stats["failed"] == 0
        assert stats["total_amount"] == Decimal("2")

        result = await session.execute(
            select(Transaction).where(Transaction.type == TransactionType.ROI_INCOME.value)
        )
        assert len(result.scalars().all()) == 2
