"""
Integration tests for account status controls, saved payout details
and concurrent wallet writers.
"""

from decimal import Decimal

import pytest

from mlm_ledger.models import PayoutStatus, TransactionType
from mlm_ledger.services.access import Principal
from mlm_ledger.services.account_service import AccountService
from mlm_ledger.services.ledger_service import LedgerService
from mlm_ledger.services.payout.request_handler import PayoutRequestHandler
from mlm_ledger.services.plan.plan_service import PlanService
from mlm_ledger.services.transaction_service import TransactionService
from mlm_ledger.utils.exceptions import (
    AccessDenied,
    InvalidRequest,
    StorageUnavailable,
    WithdrawalNotEligible,
)


pytestmark = pytest.mark.integration

UPI_DETAILS = {"upi_id": "alice@okbank"}


class TestFrozenWallet:
    """Test that frozen wallets keep their money."""

    @pytest.mark.asyncio
    async def test_freeze_blocks_debit(self, session, make_user, fund, admin):
        user = await make_user()
        await fund(user, 100)
        user_id = user.id
        await AccountService(session).set_wallet_frozen(admin, user_id, True)

        with pytest.raises(WithdrawalNotEligible) as exc_info:
            await LedgerService(session).debit(
                user_id, 40, TransactionType.WITHDRAWAL, "Manual withdrawal"
            )

        assert exc_info.value.details["reason"] == "wallet_frozen"
        wallet = await LedgerService(session).get_wallet(user_id)
        await session.refresh(wallet)
        assert wallet.total_balance == Decimal("100")
        assert wallet.is_frozen is True

    @pytest.mark.asyncio
    async def test_freeze_blocks_wallet_purchase(
        self, session, make_user, make_plan, fund, admin
    ):
        user = await make_user()
        plan = await make_plan()
        await fund(user, 150)
        user_id, plan_id = user.id, plan.id
        await AccountService(session).set_wallet_frozen(admin, user_id, True)

        with pytest.raises(WithdrawalNotEligible):
            await PlanService(session).purchase_plan(
                Principal(user_id=user_id), plan_id, pay_from_wallet=True
            )

    @pytest.mark.asyncio
    async def test_freeze_blocks_completed_withdrawal_record(
        self, session, make_user, fund, admin
    ):
        """Admin-created withdrawals settle through the same guard."""
        user = await make_user()
        await fund(user, 100)
        user_id = user.id
        await AccountService(session).set_wallet_frozen(admin, user_id, True)

        with pytest.raises(WithdrawalNotEligible):
            await TransactionService(session).create(
                admin,
                user_id,
                TransactionType.WITHDRAWAL,
                Decimal("30"),
                "Manual withdrawal",
                status="completed",
            )

    @pytest.mark.asyncio
    async def test_freeze_blocks_payout_request(self, session, make_user, fund, admin):
        user = await make_user()
        await fund(user, 100)
        user_id = user.id
        await AccountService(session).set_wallet_frozen(admin, user_id, True)

        with pytest.raises(WithdrawalNotEligible) as exc_info:
            await PayoutRequestHandler(session).create_payout(
                Principal(user_id=user_id), Decimal("50"), "upi", UPI_DETAILS
            )

        assert exc_info.value.details["reason"] == "wallet_frozen"

    @pytest.mark.asyncio
    async def test_frozen_wallet_still_earns(self, session, make_user, fund, admin):
        """Credits land while frozen and unfreezing restores debits."""
        user = await make_user()
        service = AccountService(session)
        await service.set_wallet_frozen(admin, user.id, True)

        await fund(user, 100, "roi")
        await service.set_wallet_frozen(admin, user.id, False)
        await LedgerService(session).debit(
            user.id, 40, TransactionType.WITHDRAWAL, "Manual withdrawal"
        )

        wallet = await LedgerService(session).get_wallet(user.id)
        assert wallet.roi_income == Decimal("60")

    @pytest.mark.asyncio
    async def test_users_cannot_freeze(self, session, make_user):
        user = await make_user()

        with pytest.raises(AccessDenied):
            await AccountService(session).set_wallet_frozen(
                Principal(user_id=user.id), user.id, True
            )


class TestUserStatus:
    """Test activating and deactivating users."""

    @pytest.mark.asyncio
    async def test_deactivate_user_and_wallet(self, session, make_user, fund, admin):
        user = await make_user()
        await fund(user, 100)
        user_id = user.id

        updated = await AccountService(session).set_user_status(admin, user_id, False)

        wallet = await LedgerService(session).get_wallet(user_id)
        assert updated.is_active is False
        assert wallet.is_active is False
        with pytest.raises(WithdrawalNotEligible) as exc_info:
            await LedgerService(session).debit(
                user_id, 10, TransactionType.WITHDRAWAL, "Manual withdrawal"
            )
        assert exc_info.value.details["reason"] == "wallet_inactive"

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_buy(self, session, make_user, make_plan, admin):
        user = await make_user()
        plan = await make_plan()
        user_id, plan_id = user.id, plan.id
        await AccountService(session).set_user_status(admin, user_id, False)

        with pytest.raises(InvalidRequest):
            await PlanService(session).purchase_plan(Principal(user_id=user_id), plan_id)

    @pytest.mark.asyncio
    async def test_reactivate(self, session, make_user, admin):
        user = await make_user()
        service = AccountService(session)
        await service.set_user_status(admin, user.id, False)

        await service.set_user_status(admin, user.id, True)

        wallet = await LedgerService(session).get_wallet(user.id)
        assert user.is_active is True
        assert wallet.is_active is True

    @pytest.mark.asyncio
    async def test_users_cannot_change_status(self, session, make_user):
        user = await make_user()

        with pytest.raises(AccessDenied):
            await AccountService(session).set_user_status(
                Principal(user_id=user.id), user.id, False
            )


class TestPayoutDetails:
    """Test saved payout destinations."""

    @pytest.mark.asyncio
    async def test_save_and_read(self, session, make_user):
        user = await make_user()
        principal = Principal(user_id=user.id)
        service = AccountService(session)

        await service.update_payout_details(principal, user.id, "upi", UPI_DETAILS)
        saved = await service.update_payout_details(
            principal, user.id, "paypal", {"email": "alice@example.com"}
        )

        assert saved["upi"] == {"method": "upi", "upi_id": "alice@okbank"}
        assert saved["paypal"]["email"] == "alice@example.com"
        assert await service.get_payout_details(principal, user.id) == saved

    @pytest.mark.asyncio
    async def test_invalid_details_not_saved(self, session, make_user):
        user = await make_user()
        principal = Principal(user_id=user.id)
        user_id = user.id

        with pytest.raises(InvalidRequest):
            await AccountService(session).update_payout_details(
                principal, user_id, "upi", {"upi_id": "not-an-upi"}
            )

        assert await AccountService(session).get_payout_details(principal, user_id) == {}

    @pytest.mark.asyncio
    async def test_strangers_cannot_edit(self, session, make_user):
        user = await make_user()
        stranger = await make_user()

        with pytest.raises(AccessDenied):
            await AccountService(session).update_payout_details(
                Principal(user_id=stranger.id), user.id, "upi", UPI_DETAILS
            )

    @pytest.mark.asyncio
    async def test_request_uses_saved_details(self, session, make_user, fund):
        """A request without details falls back to the saved ones."""
        user = await make_user()
        await fund(user, 100)
        principal = Principal(user_id=user.id)
        await AccountService(session).update_payout_details(
            principal, user.id, "upi", UPI_DETAILS
        )

        payout = await PayoutRequestHandler(session).create_payout(
            principal, Decimal("50"), "upi", None
        )

        assert payout.status == PayoutStatus.PENDING.value
        assert payout.payment_details["upi_id"] == "alice@okbank"

    @pytest.mark.asyncio
    async def test_request_without_any_details(self, session, make_user, fund):
        user = await make_user()
        await fund(user, 100)

        with pytest.raises(InvalidRequest):
            await PayoutRequestHandler(session).create_payout(
                Principal(user_id=user.id), Decimal("50"), "bank", None
            )


class TestConcurrentWriters:
    """Test the per-wallet version guard."""

    @pytest.mark.asyncio
    async def test_stale_wallet_write_is_refused(
        self, session, session_maker, make_user, fund
    ):
        """The second of two writers holding the same version loses."""
        user = await make_user()
        await fund(user, 100)
        user_id = user.id

        async with session_maker() as first, session_maker() as second:
            stale = await LedgerService(second).get_wallet(user_id)
            await LedgerService(first).credit(
                user_id, "bonus", 10, TransactionType.BONUS_INCOME, "First writer"
            )
            stale.bonus_income += Decimal("5")

            with pytest.raises(StorageUnavailable):
                await LedgerService(second).credit(
                    user_id, "bonus", 1, TransactionType.BONUS_INCOME, "Second writer"
                )

        async with session_maker() as fresh:
            wallet = await LedgerService(fresh).get_wallet(user_id)
            assert wallet.bonus_income == Decimal("110")
            assert wallet.total_balance == Decimal("110")
