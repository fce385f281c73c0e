"""
Payout model.

Withdrawal request with its approval state machine. The wallet
reservation is held exactly while the payout is pending, approved or
processing.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import (
    OPEN_PAYOUT_STATUSES,
    PayoutPriority,
    PayoutStatus,
)
from mlm_ledger.models.types import MoneyType, UTCDateTime
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import InvalidRequest, InvalidTransition


# status -> statuses reachable from it
PAYOUT_TRANSITIONS: dict[str, tuple[str, ...]] = {
    PayoutStatus.PENDING.value: (
        PayoutStatus.APPROVED.value,
        PayoutStatus.REJECTED.value,
        PayoutStatus.CANCELLED.value,
    ),
    PayoutStatus.APPROVED.value: (PayoutStatus.PROCESSING.value,),
    PayoutStatus.PROCESSING.value: (
        PayoutStatus.COMPLETED.value,
        PayoutStatus.FAILED.value,
    ),
    PayoutStatus.FAILED.value: (PayoutStatus.PROCESSING.value,),
}


class Payout(Base):
    """Payout model - user withdrawal request."""

    __tablename__ = "payouts"
    __table_args__ = (
        CheckConstraint("amount > 0", name="payout_amount_positive"),
        CheckConstraint("processing_fee >= 0", name="payout_fee_non_negative"),
        CheckConstraint("net_amount >= 0", name="payout_net_non_negative"),
        Index("ix_payouts_status_requested", "status", "requested_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    payout_id: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False
    )

    # Amounts
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    processing_fee: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    net_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Payment channel
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_details: Mapped[dict] = mapped_column(JSON, nullable=False)

    # State
    status: Mapped[str] = mapped_column(
        String(20),
        default=PayoutStatus.PENDING.value,
        index=True,
        nullable=False,
    )
    priority: Mapped[str] = mapped_column(
        String(10), default=PayoutPriority.NORMAL.value, nullable=False
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Processing
    requested_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    processed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    last_retry_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # References
    transaction_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )
    external_reference: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Notes
    user_notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("status", PayoutStatus.PENDING.value)
        kwargs.setdefault("priority", PayoutPriority.NORMAL.value)
        kwargs.setdefault("retry_count", 0)
        kwargs.setdefault("processing_fee", Decimal("0"))
        kwargs.setdefault("requested_at", utc_now())
        if "net_amount" not in kwargs and "amount" in kwargs:
            kwargs["net_amount"] = kwargs["amount"] - kwargs["processing_fee"]
        super().__init__(**kwargs)

    @property
    def holds_reservation(self) -> bool:
        """True while the payout keeps wallet funds reserved."""
        return self.status in OPEN_PAYOUT_STATUSES

    def can_transition(self, target: str) -> bool:
        """Whether target is reachable from the current status."""
        return target in PAYOUT_TRANSITIONS.get(self.status, ())

    def _transition(self, target: PayoutStatus) -> None:
        if not self.can_transition(target.value):
            raise InvalidTransition(
                entity="payout", current=self.status, target=target.value
            )
        self.status = target.value

    def approve(
        self,
        admin_id: int,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """pending -> approved."""
        self._transition(PayoutStatus.APPROVED)
        self.processed_at = now or utc_now()
        self.processed_by = admin_id
        if notes:
            self.admin_notes = notes

    def reject(
        self,
        admin_id: int,
        reason: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        pending -> rejected.

        Raises:
            InvalidRequest: If reason is empty
        """
        if not reason or not reason.strip():
            raise InvalidRequest("Rejection reason is required", field="reason")
        self._transition(PayoutStatus.REJECTED)
        self.processed_at = now or utc_now()
        self.processed_by = admin_id
        self.rejection_reason = reason.strip()
        if notes:
            self.admin_notes = notes

    def cancel(self, now: datetime | None = None) -> None:
        """pending -> cancelled (requesting user only, checked by caller)."""
        self._transition(PayoutStatus.CANCELLED)
        self.cancelled_at = now or utc_now()

    def mark_processing(
        self,
        admin_id: int,
        external_reference: str | None = None,
    ) -> None:
        """approved -> processing."""
        if self.status != PayoutStatus.APPROVED.value:
            raise InvalidTransition(
                entity="payout",
                current=self.status,
                target=PayoutStatus.PROCESSING.value,
            )
        self.status = PayoutStatus.PROCESSING.value
        self.processed_by = admin_id
        if external_reference:
            self.external_reference = external_reference

    def mark_completed(
        self,
        external_reference: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """processing -> completed."""
        self._transition(PayoutStatus.COMPLETED)
        self.completed_at = now or utc_now()
        if external_reference:
            self.external_reference = external_reference

    def mark_failed(
        self,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """processing -> failed; counts the failure."""
        self._transition(PayoutStatus.FAILED)
        now = now or utc_now()
        self.failed_at = now
        self.retry_count += 1
        self.last_retry_at = now
        if reason:
            self.admin_notes = reason

    def retry(self, max_retries: int, now: datetime | None = None) -> None:
        """
        failed -> processing.

        Args:
            max_retries: Failures after which the payout stays failed

        Raises:
            InvalidTransition: If not failed or retries are exhausted
        """
        if self.status == PayoutStatus.FAILED.value and self.retry_count >= max_retries:
            raise InvalidTransition(
                entity="payout",
                current=f"{self.status} (retries exhausted)",
                target=PayoutStatus.PROCESSING.value,
            )
        self._transition(PayoutStatus.PROCESSING)
        self.last_retry_at = now or utc_now()

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Payout(payout_id={self.payout_id}, user_id={self.user_id}, "
            f"amount={self.amount}, status={self.status})>"
        )
