"""
Business logic constants for the ledger.

Central location for business rules and constants used across the package.
Kept free of service imports so models and validators can depend on it.
"""

from decimal import Decimal

from mlm_ledger.config.settings import settings


# Money precision: 8 decimal places, matches MoneyType
MONEY_QUANTUM = Decimal("0.00000001")
ZERO = Decimal("0")

# Ledger reconciliation tolerance (sum of completed effects vs total balance)
LEDGER_TOLERANCE = settings.consistency_check_tolerance

# Human-decodable identifier prefixes: <prefix><epoch millis><random suffix>
TRANSACTION_ID_PREFIX = "TXN"
TRANSACTION_ID_SUFFIX_LENGTH = 6
PAYOUT_ID_PREFIX = "PO"
PAYOUT_ID_SUFFIX_LENGTH = 4

# Referral codes: 4 random bytes rendered as upper-case hex
REFERRAL_CODE_BYTES = 4
REFERRAL_CODE_MAX_ATTEMPTS = 10

# ROI duration unit in days, approximation (not calendar-accurate)
ROI_FREQUENCY_DAYS = {
    "daily": 1,
    "weekly": 7,
    "monthly": 30,
}

# Plan limits
MAX_ROI_PERCENTAGE = Decimal("100")
MAX_LEVEL_PERCENTAGE = Decimal("50")
MAX_DIRECT_BONUS_PERCENTAGE = Decimal("50")
MIN_PLAN_AMOUNT = Decimal("1")

# Payout limits
MIN_PAYOUT_AMOUNT = Decimal("1")
MAX_USER_NOTES_LENGTH = 500
MAX_ADMIN_NOTES_LENGTH = 1000
MAX_REJECTION_REASON_LENGTH = 500

# Setting keys consulted by the ledger core
SETTING_COMMISSION_MAX_LEVELS = ("commission", "max_levels")
SETTING_DIRECT_REFERRAL_BONUS = ("commission", "direct_referral_bonus")
SETTING_MIN_WITHDRAWAL = ("withdrawal", "min_withdrawal")
SETTING_MAX_DAILY_WITHDRAWAL = ("withdrawal", "max_daily_withdrawal")
SETTING_WITHDRAWAL_FEE = ("withdrawal", "withdrawal_fee")
SETTING_PAYOUT_MAX_RETRIES = ("withdrawal", "max_retries")
SETTING_MAINTENANCE_MODE = ("general", "maintenance_mode")


def _json_number(value: Decimal) -> int | float:
    """Render a Decimal as a JSON-friendly number."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Seed rows for the settings table
DEFAULT_SETTINGS: list[dict] = [
    {
        "category": "general",
        "key": "site_name",
        "value": "MLM Platform",
        "value_type": "string",
        "label": "Site Name",
        "description": "Name of the platform",
        "is_public": True,
        "validation": {"required": True, "max_length": 100},
    },
    {
        "category": "general",
        "key": "site_description",
        "value": "Complete MLM Platform Solution",
        "value_type": "string",
        "label": "Site Description",
        "description": "Description of the platform",
        "is_public": True,
        "validation": {"max_length": 500},
    },
    {
        "category": "general",
        "key": "maintenance_mode",
        "value": False,
        "value_type": "boolean",
        "label": "Maintenance Mode",
        "description": "Enable maintenance mode",
        "is_public": True,
        "validation": {},
    },
    {
        "category": "commission",
        "key": "max_levels",
        "value": settings.commission_max_levels,
        "value_type": "number",
        "label": "Maximum Commission Levels",
        "description": "Maximum number of levels for commission distribution",
        "is_public": False,
        "validation": {"required": True, "min": 1, "max": 20},
    },
    {
        "category": "commission",
        "key": "direct_referral_bonus",
        "value": _json_number(settings.direct_referral_bonus_percent),
        "value_type": "number",
        "label": "Direct Referral Bonus (%)",
        "description": "Default direct referral bonus percentage for new plans",
        "is_public": False,
        "validation": {"required": True, "min": 0, "max": 50},
    },
    {
        "category": "withdrawal",
        "key": "min_withdrawal",
        "value": _json_number(settings.default_min_withdrawal),
        "value_type": "number",
        "label": "Minimum Withdrawal",
        "description": "Minimum withdrawal amount for new wallets",
        "is_public": True,
        "validation": {"required": True, "min": 1},
    },
    {
        "category": "withdrawal",
        "key": "max_daily_withdrawal",
        "value": _json_number(settings.default_max_withdrawal_per_day),
        "value_type": "number",
        "label": "Maximum Daily Withdrawal",
        "description": "Maximum withdrawal amount per day for new wallets",
        "is_public": True,
        "validation": {"required": True, "min": 1},
    },
    {
        "category": "withdrawal",
        "key": "withdrawal_fee",
        "value": _json_number(settings.withdrawal_fee_percent),
        "value_type": "number",
        "label": "Withdrawal Fee (%)",
        "description": "Processing fee percentage charged on payouts",
        "is_public": True,
        "validation": {"required": True, "min": 0, "max": 10},
    },
    {
        "category": "withdrawal",
        "key": "max_retries",
        "value": settings.payout_max_retries,
        "value_type": "number",
        "label": "Payout Retries",
        "description": "How many times a failed payout may be retried",
        "is_public": False,
        "validation": {"required": True, "min": 0, "max": 10},
    },
]
