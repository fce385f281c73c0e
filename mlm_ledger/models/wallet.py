"""
Wallet model.

One wallet per user holding four categorized income balances plus
withdrawal reservation and limit counters. All balance arithmetic lives
here so it can be exercised without a database; services lock the row
and persist the result together with the paired Transaction.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from loguru import logger
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    JSON,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_ledger.config.business_constants import ZERO
from mlm_ledger.config.settings import settings
from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import IncomeCategory
from mlm_ledger.models.types import MoneyType, UTCDateTime
from mlm_ledger.utils.datetime_utils import is_same_day, utc_now
from mlm_ledger.utils.exceptions import (
    InsufficientBalance,
    InvalidAmount,
    InvalidCategory,
    WithdrawalNotEligible,
)
from mlm_ledger.utils.money import floor_money, positive_money

if TYPE_CHECKING:
    from mlm_ledger.models.user import User


# Income category -> wallet column
CATEGORY_FIELDS: dict[str, str] = {
    IncomeCategory.DIRECT.value: "direct_income",
    IncomeCategory.LEVEL.value: "level_income",
    IncomeCategory.ROI.value: "roi_income",
    IncomeCategory.BONUS.value: "bonus_income",
}

_ZERO_FIELDS = (
    *CATEGORY_FIELDS.values(),
    "total_balance",
    "pending_withdrawal",
    "total_withdrawn",
    "total_invested",
    "active_investment",
    "today_withdrawal",
)


@dataclass
class WithdrawalEligibility:
    """
    Result of a withdrawal eligibility check.

    Limits and remaining allowance are filled regardless of the outcome
    so clients can display them.
    """

    eligible: bool
    reason: str | None
    amount: Decimal
    available_balance: Decimal
    min_withdrawal: Decimal
    max_withdrawal_per_day: Decimal
    today_withdrawal: Decimal
    remaining_daily_limit: Decimal

    def to_dict(self) -> dict[str, Any]:
        """Serialize with Decimal values rendered as strings."""
        return {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in asdict(self).items()
        }


class Wallet(Base):
    """Wallet model - categorized balances of a single user."""

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("direct_income >= 0", name="wallet_direct_non_negative"),
        CheckConstraint("level_income >= 0", name="wallet_level_non_negative"),
        CheckConstraint("roi_income >= 0", name="wallet_roi_non_negative"),
        CheckConstraint("bonus_income >= 0", name="wallet_bonus_non_negative"),
        CheckConstraint(
            "pending_withdrawal >= 0", name="wallet_pending_non_negative"
        ),
        CheckConstraint(
            "pending_withdrawal <= total_balance",
            name="wallet_available_non_negative",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )

    # Income categories
    direct_income: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    level_income: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    roi_income: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    bonus_income: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Derived, recomputed before every persist
    total_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Withdrawal tracking
    pending_withdrawal: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_withdrawn: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Investment tracking
    total_invested: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    active_investment: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Withdrawal limits
    min_withdrawal: Mapped[Decimal] = mapped_column(
        MoneyType, default=settings.default_min_withdrawal, nullable=False
    )
    max_withdrawal_per_day: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=settings.default_max_withdrawal_per_day,
        nullable=False,
    )
    today_withdrawal: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    last_withdrawal_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Status
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    is_frozen: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    last_transaction_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )

    # Saved payout destinations keyed by method (bank, crypto, upi, paypal)
    payout_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Optimistic concurrency guard (in addition to SELECT ... FOR UPDATE)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    user: Mapped["User"] = relationship(
        "User", back_populates="wallet", lazy="raise"
    )

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs: Any) -> None:
        for field in _ZERO_FIELDS:
            kwargs.setdefault(field, Decimal("0"))
        kwargs.setdefault("min_withdrawal", settings.default_min_withdrawal)
        kwargs.setdefault(
            "max_withdrawal_per_day", settings.default_max_withdrawal_per_day
        )
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("is_frozen", False)
        super().__init__(**kwargs)
        self.recompute_total()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def total_income(self) -> Decimal:
        """Sum of the four income categories."""
        return sum(
            (getattr(self, field) or ZERO for field in CATEGORY_FIELDS.values()),
            ZERO,
        )

    @property
    def available_balance(self) -> Decimal:
        """Balance not reserved by open payouts."""
        return (self.total_balance or ZERO) - (self.pending_withdrawal or ZERO)

    def category_balances(self) -> dict[str, Decimal]:
        """Snapshot of the four categories keyed by category name."""
        return {
            category: getattr(self, field)
            for category, field in CATEGORY_FIELDS.items()
        }

    def recompute_total(self) -> Decimal:
        """
        Derive total_balance from the categories.

        Called on every mutation and before every flush; a stored
        total is never trusted.
        """
        self.total_balance = self.total_income
        return self.total_balance

    # ------------------------------------------------------------------
    # Income / debit
    # ------------------------------------------------------------------

    def add_income(self, category: str | IncomeCategory, amount: Any) -> Decimal:
        """
        Credit an income category.

        Args:
            category: direct, level, roi or bonus
            amount: Positive amount

        Returns:
            New total balance

        Raises:
            InvalidAmount: If amount <= 0
            InvalidCategory: If category is unknown
        """
        amount = positive_money(amount)
        key = category.value if isinstance(category, IncomeCategory) else category
        field = CATEGORY_FIELDS.get(key)
        if field is None:
            raise InvalidCategory(category)

        setattr(self, field, getattr(self, field) + amount)
        return self.recompute_total()

    def deduct_balance(self, amount: Any) -> dict[str, Decimal]:
        """
        Deduct amount proportionally across the income categories.

        Each category gives up ``amount * category / total_income`` rounded
        down to 8 places; the rounding residual (at most 4e-8) is taken
        from the largest category. No category drops below zero.

        Args:
            amount: Positive amount, at most available_balance

        Returns:
            Amount deducted per category

        Raises:
            InvalidAmount: If amount <= 0
            WithdrawalNotEligible: If the wallet is inactive or frozen
            InsufficientBalance: If amount > available_balance
        """
        amount = positive_money(amount)
        self.recompute_total()
        blocked = self.blocked_reason
        if blocked is not None:
            raise WithdrawalNotEligible(self._eligibility(amount, blocked))

        available = self.available_balance
        if amount > available:
            raise InsufficientBalance(requested=amount, available=available)

        total_income = self.total_income
        shares = {
            field: floor_money(amount * getattr(self, field) / total_income)
            for field in CATEGORY_FIELDS.values()
        }

        residual = amount - sum(shares.values(), ZERO)
        if residual:
            largest = max(CATEGORY_FIELDS.values(), key=lambda f: getattr(self, f))
            shares[largest] += residual

        deducted = {}
        for category, field in CATEGORY_FIELDS.items():
            current = getattr(self, field)
            new_value = max(ZERO, current - shares[field])
            deducted[category] = current - new_value
            setattr(self, field, new_value)

        self.recompute_total()
        return deducted

    # ------------------------------------------------------------------
    # Withdrawal limits and reservation
    # ------------------------------------------------------------------

    def reset_daily_withdrawal(self, now: datetime | None = None) -> None:
        """Zero today_withdrawal when the last withdrawal was on another day."""
        now = now or utc_now()
        if self.last_withdrawal_date is not None and not is_same_day(
            self.last_withdrawal_date, now
        ):
            self.today_withdrawal = ZERO

    def can_withdraw(
        self, amount: Any, now: datetime | None = None
    ) -> WithdrawalEligibility:
        """
        Check withdrawal eligibility.

        Eligible iff the wallet is usable, amount >= min_withdrawal,
        amount <= available_balance and the daily limit is not exceeded.

        Args:
            amount: Requested amount
            now: Current moment (for the calendar-day reset)

        Returns:
            WithdrawalEligibility with current limits
        """
        amount = positive_money(amount)
        self.reset_daily_withdrawal(now)
        self.recompute_total()

        reason = self.blocked_reason
        if reason is None:
            if amount < self.min_withdrawal:
                reason = "below_minimum"
            elif amount > self.available_balance:
                reason = "insufficient_balance"
            elif self.today_withdrawal + amount > self.max_withdrawal_per_day:
                reason = "daily_limit_exceeded"

        return self._eligibility(amount, reason)

    @property
    def blocked_reason(self) -> str | None:
        """wallet_inactive or wallet_frozen when no money may leave the wallet."""
        if not self.is_active:
            return "wallet_inactive"
        if self.is_frozen:
            return "wallet_frozen"
        return None

    def _eligibility(self, amount: Decimal, reason: str | None) -> WithdrawalEligibility:
        return WithdrawalEligibility(
            eligible=reason is None,
            reason=reason,
            amount=amount,
            available_balance=self.available_balance,
            min_withdrawal=self.min_withdrawal,
            max_withdrawal_per_day=self.max_withdrawal_per_day,
            today_withdrawal=self.today_withdrawal,
            remaining_daily_limit=max(
                ZERO, self.max_withdrawal_per_day - self.today_withdrawal
            ),
        )

    def reserve(self, amount: Any) -> Decimal:
        """
        Reserve funds for an open payout.

        Raises:
            InvalidAmount: If amount <= 0
            InsufficientBalance: If amount > available_balance
        """
        amount = positive_money(amount)
        self.recompute_total()
        if amount > self.available_balance:
            raise InsufficientBalance(
                requested=amount, available=self.available_balance
            )
        self.pending_withdrawal += amount
        return self.pending_withdrawal

    def release(self, amount: Any) -> Decimal:
        """
        Release a payout reservation.

        Raises:
            InvalidAmount: If amount <= 0 or exceeds pending_withdrawal
        """
        amount = positive_money(amount)
        if amount > self.pending_withdrawal:
            logger.error(
                "Reservation release exceeds pending withdrawal",
                extra={
                    "wallet_id": self.id,
                    "amount": str(amount),
                    "pending_withdrawal": str(self.pending_withdrawal),
                },
            )
            raise InvalidAmount(amount, "Release exceeds reserved amount")
        self.pending_withdrawal -= amount
        return self.pending_withdrawal

    def record_withdrawal(self, amount: Any, now: datetime | None = None) -> None:
        """Bump withdrawal counters after a payout settles."""
        amount = positive_money(amount)
        now = now or utc_now()
        self.reset_daily_withdrawal(now)
        self.total_withdrawn += amount
        self.today_withdrawal += amount
        self.last_withdrawal_date = now

    def snapshot(self) -> dict[str, str]:
        """Balances for logging."""
        return {
            **{field: str(getattr(self, field)) for field in CATEGORY_FIELDS.values()},
            "total_balance": str(self.total_balance),
            "pending_withdrawal": str(self.pending_withdrawal),
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Wallet(id={self.id}, user_id={self.user_id}, "
            f"total_balance={self.total_balance}, "
            f"pending_withdrawal={self.pending_withdrawal})>"
        )


@event.listens_for(Wallet, "before_insert")
@event.listens_for(Wallet, "before_update")
def _recompute_before_flush(mapper: Any, connection: Any, target: Wallet) -> None:
    target.recompute_total()
