"""
Unit tests for service plumbing that needs no database.

Covers:
- Principal checks
- The unit-of-work decorator (commit, rollback, error translation)
- Sponsor chain walking over a mocked repository
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError

from mlm_ledger.services.access import (
    Principal,
    require_admin,
    require_owner,
    require_owner_or_admin,
)
from mlm_ledger.services.base_service import BaseService, log_operation, transaction
from mlm_ledger.services.referral.chain_manager import ReferralChainManager
from mlm_ledger.utils.exceptions import (
    AccessDenied,
    CorruptGraph,
    InvalidRequest,
    StorageUnavailable,
)


class TestAccess:
    """Test principal checks."""

    def test_admin_principal(self):
        principal = Principal.admin(1)

        assert principal.is_admin is True
        require_admin(principal, "do things")

    def test_user_is_not_admin(self):
        with pytest.raises(AccessDenied) as exc_info:
            require_admin(Principal(user_id=2), "approve payouts")

        assert exc_info.value.details == {"action": "approve payouts", "user_id": 2}

    def test_owner(self):
        require_owner(Principal(user_id=3), 3, "cancel payout")

        with pytest.raises(AccessDenied):
            require_owner(Principal(user_id=4), 3, "cancel payout")

    def test_admin_is_not_owner(self):
        """Owner-only actions are refused to admins too."""
        with pytest.raises(AccessDenied):
            require_owner(Principal.admin(1), 3, "cancel payout")

    def test_owner_or_admin(self):
        require_owner_or_admin(Principal.admin(1), 3, "view payout")
        require_owner_or_admin(Principal(user_id=3), 3, "view payout")

        with pytest.raises(AccessDenied):
            require_owner_or_admin(Principal(user_id=4), 3, "view payout")


class _Service(BaseService):
    """Service whose operation behaviour is injected per test."""

    def __init__(self, session, behaviour):
        super().__init__(session)
        self.behaviour = behaviour

    @transaction
    async def operate(self):
        return await self.behaviour()

    @log_operation
    async def batch(self):
        return await self.behaviour()


class TestTransactionDecorator:
    """Test the unit-of-work decorator."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_session):
        service = _Service(mock_session, AsyncMock(return_value="done"))

        assert await service.operate() == "done"

        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_business_error_rolls_back_and_propagates(self, mock_session):
        service = _Service(mock_session, AsyncMock(side_effect=InvalidRequest("nope")))

        with pytest.raises(InvalidRequest):
            await service.operate()

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_braced_error_text_survives_logging(self, mock_session):
        """Braces in an error message reach the caller and the log intact."""
        records = []
        sink_id = logger.add(lambda m: records.append(m.record), level="DEBUG")
        message = "upi_id: String should match pattern '^[a-z]{2,256}$'"
        service = _Service(mock_session, AsyncMock(side_effect=InvalidRequest(message)))

        try:
            with pytest.raises(InvalidRequest) as exc_info:
                await service.operate()
        finally:
            logger.remove(sink_id)

        assert str(exc_info.value) == message
        [rejected] = [r for r in records if r["message"] == "Rejected operate"]
        assert rejected["extra"]["extra"]["error"] == message

    @pytest.mark.asyncio
    async def test_connection_error_becomes_storage_unavailable(self, mock_session):
        error = OperationalError("SELECT 1", {}, Exception("connection refused"))
        service = _Service(mock_session, AsyncMock(side_effect=error))

        with pytest.raises(StorageUnavailable) as exc_info:
            await service.operate()

        assert exc_info.value.__cause__ is error
        assert exc_info.value.details["operation"] == "operate"
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_integrity_error_propagates_unchanged(self, mock_session):
        error = IntegrityError("INSERT", {}, Exception("duplicate key"))
        service = _Service(mock_session, AsyncMock(side_effect=error))

        with pytest.raises(IntegrityError):
            await service.operate()

        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_log_operation_passes_result_through(self, mock_session):
        service = _Service(mock_session, AsyncMock(return_value=42))

        assert await service.batch() == 42
        mock_session.commit.assert_not_awaited()


def _user(id, sponsor_id=None, is_active=True):
    return SimpleNamespace(id=id, sponsor_id=sponsor_id, is_active=is_active)


class TestSponsorChain:
    """Test chain walking with a mocked user repository."""

    def _manager(self, mock_session, users, max_depth=None):
        manager = ReferralChainManager(mock_session, max_depth=max_depth)
        manager.user_repo = AsyncMock()
        manager.user_repo.get_by_id = AsyncMock(side_effect=lambda id: users.get(id))
        return manager

    @pytest.mark.asyncio
    async def test_chain_nearest_first(self, mock_session):
        users = {1: _user(1), 2: _user(2, 1), 3: _user(3, 2)}
        manager = self._manager(mock_session, users)

        upline = await manager.get_upline(_user(4, 3))

        assert [u.id for u in upline] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_upline_limit(self, mock_session):
        users = {1: _user(1), 2: _user(2, 1), 3: _user(3, 2)}
        manager = self._manager(mock_session, users)

        upline = await manager.get_upline(_user(4, 3), limit=2)

        assert [u.id for u in upline] == [3, 2]

    @pytest.mark.asyncio
    async def test_root_has_no_chain(self, mock_session):
        manager = self._manager(mock_session, {})

        assert await manager.get_upline(_user(1)) == []

    @pytest.mark.asyncio
    async def test_cycle_is_reported(self, mock_session):
        users = {2: _user(2, 3), 3: _user(3, 2)}
        manager = self._manager(mock_session, users)

        with pytest.raises(CorruptGraph) as exc_info:
            await manager.get_upline(_user(1, 2))

        assert exc_info.value.details["repeated_id"] == 2

    @pytest.mark.asyncio
    async def test_depth_bound(self, mock_session):
        users = {i: _user(i, i - 1 if i > 1 else None) for i in range(1, 11)}
        manager = self._manager(mock_session, users, max_depth=5)

        with pytest.raises(CorruptGraph):
            await manager.get_upline(_user(11, 10))

    @pytest.mark.asyncio
    async def test_zero_depth_is_honoured(self, mock_session):
        """An explicit zero bound allows no ancestors at all."""
        manager = self._manager(mock_session, {1: _user(1)}, max_depth=0)

        assert manager.max_depth == 0
        assert await manager.get_upline(_user(2)) == []
        with pytest.raises(CorruptGraph):
            await manager.get_upline(_user(2, 1))

    @pytest.mark.asyncio
    async def test_dangling_sponsor(self, mock_session):
        manager = self._manager(mock_session, {})

        with pytest.raises(CorruptGraph):
            await manager.get_upline(_user(1, 99))
