"""
Tests for background job plumbing.

Redis and the database are replaced with mocks; the actors' async
bodies are driven directly.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from jobs.tasks import daily_roi, ledger_consistency
from jobs.utils import locking
from mlm_ledger.services.consistency_service import ConsistencyReport, LedgerCheck


def _fake_single_run(acquired: bool):
    @asynccontextmanager
    async def _single_run(name, timeout):
        yield acquired

    return _single_run


@asynccontextmanager
async def _fake_session():
    yield MagicMock()


class TestSingleRun:
    """Test the non-blocking job lock."""

    def _client(self, acquired: bool):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=acquired)
        lock.release = AsyncMock()
        client = MagicMock()
        client.lock = MagicMock(return_value=lock)
        client.aclose = AsyncMock()
        return client, lock

    @pytest.mark.asyncio
    async def test_acquired_lock_is_released(self):
        """Owner releases the lock and closes the client."""
        client, lock = self._client(True)

        with patch.object(locking, "create_redis_client", return_value=client):
            async with locking.single_run("daily_roi", timeout=60) as acquired:
                assert acquired is True

        client.lock.assert_called_once_with("mlm_ledger:job:daily_roi", timeout=60)
        lock.acquire.assert_awaited_once_with(blocking=False)
        lock.release.assert_awaited_once()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_busy_lock_is_not_released(self):
        """A worker that did not get the lock leaves it alone."""
        client, lock = self._client(False)

        with patch.object(locking, "create_redis_client", return_value=client):
            async with locking.single_run("daily_roi", timeout=60) as acquired:
                assert acquired is False

        lock.release.assert_not_awaited()
        client.aclose.assert_awaited_once()


class TestDailyRoiTask:
    """Test the ROI accrual actor body."""

    @pytest.mark.asyncio
    async def test_skips_when_locked(self):
        """Another worker holds the lock."""
        with patch.object(daily_roi, "single_run", _fake_single_run(False)):
            result = await daily_roi._accrue_daily_roi_async()

        assert result == {"success": True, "skipped": True}

    @pytest.mark.asyncio
    async def test_runs_batch(self):
        """Batch statistics are returned with the total as a string."""
        stats = {
            "processed": 3,
            "credited": 2,
            "skipped": 1,
            "failed": 0,
            "total_amount": Decimal("20"),
        }
        service = MagicMock()
        service.accrue_all = AsyncMock(return_value=stats)

        with (
            patch.object(daily_roi, "single_run", _fake_single_run(True)),
            patch.object(daily_roi, "create_local_session", _fake_session),
            patch.object(daily_roi, "RoiService", return_value=service),
        ):
            result = await daily_roi._accrue_daily_roi_async()

        assert result["success"] is True
        assert result["credited"] == 2
        assert result["total_amount"] == "20"

    def test_actor_reports_failure(self):
        """Unexpected errors are returned, not raised."""

        def _boom(coro):
            coro.close()
            raise RuntimeError("database down")

        with patch.object(daily_roi, "run_async", side_effect=_boom):
            result = daily_roi.accrue_daily_roi.fn()

        assert result == {"success": False, "error": "database down"}


class TestLedgerConsistencyTask:
    """Test the consistency actor body."""

    @pytest.mark.asyncio
    async def test_skips_when_locked(self):
        with patch.object(ledger_consistency, "single_run", _fake_single_run(False)):
            result = await ledger_consistency._check_ledger_consistency_async()

        assert result == {"ok": True, "skipped": True}

    @pytest.mark.asyncio
    async def test_report_is_serialized(self):
        """Mismatches come back as plain dicts with string amounts."""
        report = ConsistencyReport(
            checked=2,
            ledger_mismatches=[
                LedgerCheck(
                    user_id=7,
                    total_balance=Decimal("15"),
                    ledger_total=Decimal("10"),
                )
            ],
        )
        service = MagicMock()
        service.run_full_check = AsyncMock(return_value=report)

        with (
            patch.object(ledger_consistency, "single_run", _fake_single_run(True)),
            patch.object(ledger_consistency, "create_local_session", _fake_session),
            patch.object(ledger_consistency, "ConsistencyService", return_value=service),
        ):
            result = await ledger_consistency._check_ledger_consistency_async()

        assert result["ok"] is False
        assert result["checked"] == 2
        assert result["ledger_mismatches"][0]["user_id"] == 7
        assert result["ledger_mismatches"][0]["total_balance"] == "15"
