"""
Ledger consistency task.

Periodically reconciles every wallet against its transactions and open
payouts and reports mismatches. Never corrects data.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from jobs.utils.locking import single_run
from mlm_ledger.services.consistency_service import ConsistencyService


@dramatiq.actor(max_retries=3, time_limit=900_000)  # 15 min
def check_ledger_consistency() -> dict:
    """
    Run the full consistency check.

    Returns:
        Report dict, or a dict with an error message
    """
    logger.info("Starting ledger consistency check...")

    try:
        report = run_async(_check_ledger_consistency_async())
    except Exception as e:
        logger.exception(f"Ledger consistency check failed: {e}")
        return {"ok": False, "error": str(e)}

    if report.get("ok", True):
        logger.info(f"Ledger consistent: {report.get('checked', 0)} wallets checked")
    else:
        logger.error(
            "Ledger inconsistencies found",
            extra={
                "reservation_mismatches": len(report["reservation_mismatches"]),
                "ledger_mismatches": len(report["ledger_mismatches"]),
            },
        )
    return report


async def _check_ledger_consistency_async() -> dict:
    """Async implementation of the consistency check."""
    async with single_run("ledger_consistency", timeout=900) as acquired:
        if not acquired:
            return {"ok": True, "skipped": True}

        async with create_local_session() as session:
            report = await ConsistencyService(session).run_full_check()

    return report.to_dict()
