"""
Standard type definitions for database models.

Provides consistent types for monetary, percentage and timestamp fields
across all models.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DECIMAL, DateTime
from sqlalchemy.types import TypeDecorator

from mlm_ledger.utils.datetime_utils import ensure_utc

# Standard money type for amounts, balances, commissions
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Standard percentage type for plan ROI and commission rates
# Precision: 5 digits total, 2 after decimal point
# Range: 0.00 to 999.99
PercentType = DECIMAL(5, 2)

# Precise rate percentage type for fees and per-transaction rates
# Precision: 10 digits total, 4 after decimal point
RatePercentType = DECIMAL(10, 4)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp.

    Backends without timezone support (SQLite) hand back naive values;
    those are re-attached to UTC on load so comparisons with utc_now()
    never mix naive and aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)
