"""
Enumerations shared by models and services.

Stored as their string values.
"""

from enum import Enum


class UserRole(str, Enum):
    """Principal role."""

    USER = "user"
    ADMIN = "admin"


class IncomeCategory(str, Enum):
    """Wallet income bucket."""

    DIRECT = "direct"
    LEVEL = "level"
    ROI = "roi"
    BONUS = "bonus"


class TransactionType(str, Enum):
    """Monetary event type."""

    DIRECT_INCOME = "direct_income"
    LEVEL_INCOME = "level_income"
    ROI_INCOME = "roi_income"
    BONUS_INCOME = "bonus_income"
    WITHDRAWAL = "withdrawal"
    INVESTMENT = "investment"
    PLAN_PURCHASE = "plan_purchase"
    REFERRAL_BONUS = "referral_bonus"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How a transaction was settled."""

    WALLET = "wallet"
    BANK = "bank"
    CRYPTO = "crypto"
    UPI = "upi"
    ADMIN = "admin"


class PayoutMethod(str, Enum):
    """External payout channel."""

    BANK = "bank"
    CRYPTO = "crypto"
    UPI = "upi"
    PAYPAL = "paypal"


class PayoutStatus(str, Enum):
    """Payout request lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PayoutPriority(str, Enum):
    """Payout processing priority."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RoiFrequency(str, Enum):
    """ROI duration unit."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PlanCategory(str, Enum):
    """Plan tier."""

    STARTER = "starter"
    BASIC = "basic"
    PREMIUM = "premium"
    VIP = "vip"
    ELITE = "elite"


class PlanStatus(str, Enum):
    """Derived plan availability."""

    INACTIVE = "inactive"
    EXPIRED = "expired"
    UPCOMING = "upcoming"
    ACTIVE = "active"


class SettingCategory(str, Enum):
    """Settings group."""

    GENERAL = "general"
    PAYMENT = "payment"
    COMMISSION = "commission"
    WITHDRAWAL = "withdrawal"
    NOTIFICATION = "notification"
    SECURITY = "security"
    API = "api"
    MAINTENANCE = "maintenance"


class SettingValueType(str, Enum):
    """Tag of a setting value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


# Transaction types crediting the wallet, with the bucket they land in
INCOME_TRANSACTION_CATEGORIES: dict[str, str] = {
    TransactionType.DIRECT_INCOME.value: IncomeCategory.DIRECT.value,
    TransactionType.LEVEL_INCOME.value: IncomeCategory.LEVEL.value,
    TransactionType.ROI_INCOME.value: IncomeCategory.ROI.value,
    TransactionType.BONUS_INCOME.value: IncomeCategory.BONUS.value,
    TransactionType.REFERRAL_BONUS.value: IncomeCategory.BONUS.value,
}

# Payout statuses that hold a wallet reservation
OPEN_PAYOUT_STATUSES = (
    PayoutStatus.PENDING.value,
    PayoutStatus.APPROVED.value,
    PayoutStatus.PROCESSING.value,
)

PAYOUT_PRIORITY_ORDER = {
    PayoutPriority.URGENT.value: 4,
    PayoutPriority.HIGH.value: 3,
    PayoutPriority.NORMAL.value: 2,
    PayoutPriority.LOW.value: 1,
}
