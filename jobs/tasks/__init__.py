"""
Dramatiq actors.

Importing this package configures the Redis broker before the actors
are declared, so workers can be started with ``dramatiq jobs.tasks``.
"""

from jobs import broker  # noqa: F401
from jobs.tasks.daily_roi import accrue_daily_roi
from jobs.tasks.ledger_consistency import check_ledger_consistency


__all__ = [
    "accrue_daily_roi",
    "check_ledger_consistency",
]
