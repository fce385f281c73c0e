"""
Daily ROI task.

Credits one day of ROI to every plan holder. Safe to run more than once
a day: accrual is idempotent per user and calendar day.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from jobs.utils.locking import single_run
from mlm_ledger.services.plan.roi_service import RoiService


@dramatiq.actor(max_retries=3, time_limit=600_000)  # 10 min
def accrue_daily_roi() -> dict:
    """
    Accrue ROI for all plan holders.

    Returns:
        Batch statistics, or a dict with an error message
    """
    logger.info("Starting daily ROI accrual...")

    try:
        result = run_async(_accrue_daily_roi_async())
    except Exception as e:
        logger.exception(f"Daily ROI accrual failed: {e}")
        return {"success": False, "error": str(e)}

    logger.info(
        f"Daily ROI accrual complete: {result.get('credited', 0)} credited, "
        f"total: {result.get('total_amount', 0)}"
    )
    return result


async def _accrue_daily_roi_async() -> dict:
    """Async implementation of daily ROI accrual."""
    async with single_run("daily_roi", timeout=600) as acquired:
        if not acquired:
            return {"success": True, "skipped": True}

        async with create_local_session() as session:
            stats = await RoiService(session).accrue_all()

    return {
        "success": True,
        **stats,
        "total_amount": str(stats["total_amount"]),
    }
