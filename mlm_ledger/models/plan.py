"""
Plan model.

Investment plan with an ROI schedule and a per-level commission table.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from mlm_ledger.config.business_constants import (
    MAX_DIRECT_BONUS_PERCENTAGE,
    MAX_LEVEL_PERCENTAGE,
    MAX_ROI_PERCENTAGE,
    MIN_PLAN_AMOUNT,
    ROI_FREQUENCY_DAYS,
    ZERO,
)
from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import PlanCategory, PlanStatus, RoiFrequency
from mlm_ledger.models.types import MoneyType, PercentType, UTCDateTime
from mlm_ledger.utils.datetime_utils import ensure_utc, utc_now
from mlm_ledger.utils.exceptions import (
    InvalidAmount,
    InvalidLevelSequence,
    InvalidRequest,
)
from mlm_ledger.utils.money import percent_of, quantize_money, to_decimal


def normalize_level_commissions(entries: list[Any] | None) -> list[dict[str, Any]]:
    """
    Validate and sort a level commission table.

    Entries are sorted by level, then must read 1..N with no gaps or
    duplicates. Percentages are kept as strings so the JSON column
    round-trips them without float drift.

    Args:
        entries: Items with ``level`` and ``percentage`` (dicts or pairs)

    Returns:
        Sorted list of {"level": int, "percentage": str}

    Raises:
        InvalidLevelSequence: If levels are not 1..N or a percentage is
            outside 0..50
    """
    parsed: list[tuple[int, Decimal]] = []
    for entry in entries or []:
        try:
            if isinstance(entry, dict):
                level, percentage = entry.get("level"), entry.get("percentage")
            else:
                level, percentage = entry
            level = int(level)
            percentage = to_decimal(percentage)
        except (TypeError, ValueError, InvalidAmount) as e:
            raise InvalidLevelSequence(
                [], reason=f"Malformed commission entry: {entry!r}"
            ) from e
        parsed.append((level, percentage))

    parsed.sort(key=lambda item: item[0])
    levels = [level for level, _ in parsed]

    if levels != list(range(1, len(levels) + 1)):
        raise InvalidLevelSequence(levels)

    for level, percentage in parsed:
        if percentage < ZERO or percentage > MAX_LEVEL_PERCENTAGE:
            raise InvalidLevelSequence(
                levels,
                reason=f"Level {level} percentage must be between 0 and "
                f"{MAX_LEVEL_PERCENTAGE}",
            )

    return [
        {"level": level, "percentage": str(percentage)}
        for level, percentage in parsed
    ]


class Plan(Base):
    """Plan model - purchasable investment plan."""

    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("amount >= 1", name="plan_amount_min"),
        CheckConstraint(
            "roi_percentage >= 0 AND roi_percentage <= 100",
            name="plan_roi_percentage_range",
        ),
        CheckConstraint("roi_duration >= 1", name="plan_roi_duration_min"),
        CheckConstraint(
            "direct_referral_bonus_percentage >= 0 "
            "AND direct_referral_bonus_percentage <= 50",
            name="plan_direct_bonus_range",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Description
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(
        String(20), default=PlanCategory.BASIC.value, nullable=False
    )
    features: Mapped[list | None] = mapped_column(JSON, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Pricing
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency: Mapped[str] = mapped_column(
        String(10), default="USDT", nullable=False
    )

    # ROI schedule
    roi_percentage: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    roi_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    roi_frequency: Mapped[str] = mapped_column(
        String(20), default=RoiFrequency.DAILY.value, nullable=False
    )

    # Commission schedule
    level_commissions: Mapped[list] = mapped_column(
        JSON, default=list, nullable=False
    )
    direct_referral_bonus_percentage: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("0"), nullable=False
    )

    # Availability
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    is_visible: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    valid_from: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    valid_until: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    max_purchases: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_referrals_required: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Counters
    total_purchases: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_revenue: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Audit
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("level_commissions", [])
        kwargs.setdefault("direct_referral_bonus_percentage", Decimal("0"))
        kwargs.setdefault("roi_frequency", RoiFrequency.DAILY.value)
        kwargs.setdefault("category", PlanCategory.BASIC.value)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("is_visible", True)
        kwargs.setdefault("valid_from", utc_now())
        kwargs.setdefault("min_referrals_required", 0)
        kwargs.setdefault("total_purchases", 0)
        kwargs.setdefault("total_revenue", Decimal("0"))
        kwargs.setdefault("priority", 0)
        super().__init__(**kwargs)

    @validates("level_commissions")
    def _validate_level_commissions(self, key: str, value: list[Any]) -> list[dict]:
        return normalize_level_commissions(value)

    @validates("amount")
    def _validate_amount(self, key: str, value: Any) -> Decimal:
        amount = quantize_money(value)
        if amount < MIN_PLAN_AMOUNT:
            raise InvalidAmount(value, f"Plan amount must be at least {MIN_PLAN_AMOUNT}")
        return amount

    @validates("roi_percentage", "direct_referral_bonus_percentage")
    def _validate_percentage(self, key: str, value: Any) -> Decimal:
        percentage = to_decimal(value)
        limit = (
            MAX_ROI_PERCENTAGE if key == "roi_percentage" else MAX_DIRECT_BONUS_PERCENTAGE
        )
        if percentage < ZERO or percentage > limit:
            raise InvalidRequest(f"{key} must be between 0 and {limit}", field=key)
        return percentage

    @validates("roi_duration")
    def _validate_roi_duration(self, key: str, value: Any) -> int:
        if int(value) < 1:
            raise InvalidRequest("roi_duration must be at least 1", field=key)
        return int(value)

    @validates("valid_from", "valid_until")
    def _validate_window(self, key: str, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @validates("roi_frequency")
    def _validate_roi_frequency(self, key: str, value: str) -> str:
        value = value.value if isinstance(value, RoiFrequency) else value
        if value not in ROI_FREQUENCY_DAYS:
            raise InvalidRequest(f"Unknown ROI frequency: {value}", field=key)
        return value

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def total_roi_amount(self) -> Decimal:
        """amount * roi_percentage / 100."""
        return percent_of(self.amount, self.roi_percentage)

    @property
    def total_roi_days(self) -> int:
        """Duration in days: x1 daily, x7 weekly, x30 monthly."""
        return self.roi_duration * ROI_FREQUENCY_DAYS[self.roi_frequency]

    @property
    def daily_roi_amount(self) -> Decimal:
        """Total ROI spread over the duration in days."""
        return quantize_money(self.total_roi_amount / self.total_roi_days)

    @property
    def total_commission_percentage(self) -> Decimal:
        """Sum of all level percentages plus the direct referral bonus."""
        level_total = sum(
            (Decimal(entry["percentage"]) for entry in self.level_commissions),
            ZERO,
        )
        return level_total + self.direct_referral_bonus_percentage

    @property
    def commission_depth(self) -> int:
        """Number of configured commission levels."""
        return len(self.level_commissions)

    def status_at(self, now: datetime | None = None) -> PlanStatus:
        """Availability at a given moment."""
        now = now or utc_now()
        if not self.is_active:
            return PlanStatus.INACTIVE
        if self.valid_until is not None and now > self.valid_until:
            return PlanStatus.EXPIRED
        if now < self.valid_from:
            return PlanStatus.UPCOMING
        return PlanStatus.ACTIVE

    @property
    def status(self) -> str:
        """Current availability (inactive, expired, upcoming, active)."""
        return self.status_at().value

    def is_purchasable(self, now: datetime | None = None) -> bool:
        """Active AND visible AND now within [valid_from, valid_until]."""
        return self.is_visible and self.status_at(now) == PlanStatus.ACTIVE

    def has_capacity(self) -> bool:
        """False once max_purchases is reached."""
        return self.max_purchases is None or self.total_purchases < self.max_purchases

    def get_commission_for_level(self, level: int) -> Decimal:
        """
        Commission percentage for a chain position.

        Levels beyond the configured table pay nothing.

        Args:
            level: 1-indexed position above the purchaser

        Returns:
            Percentage, 0 if the level is not configured
        """
        for entry in self.level_commissions:
            if entry["level"] == level:
                return Decimal(entry["percentage"])
        return ZERO

    def increment_purchase(self, amount: Any = None) -> None:
        """
        Bump purchase counter and revenue.

        Args:
            amount: Price actually paid (promotional override);
                defaults to the plan amount
        """
        revenue = self.amount if amount is None else quantize_money(amount)
        self.total_purchases += 1
        self.total_revenue += revenue

    def calculate_total_return(self, amount: Any = None) -> Decimal:
        """Investment plus total ROI for amount (defaults to plan amount)."""
        base = self.amount if amount is None else quantize_money(amount)
        return base + percent_of(base, self.roi_percentage)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Plan(id={self.id}, name={self.name}, amount={self.amount}, "
            f"levels={len(self.level_commissions or [])})>"
        )
