"""
Transaction model.

Append-mostly log of monetary events. Identity fields are immutable once
the row exists; only status, notes and timestamps move.
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
from sqlalchemy.orm import Mapped, mapped_column, validates

from mlm_ledger.config.business_constants import ZERO
from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import (
    INCOME_TRANSACTION_CATEGORIES,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)
from mlm_ledger.models.types import MoneyType, PercentType, UTCDateTime
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import InvalidTransition


# Fields that may not change after the row is persisted
IMMUTABLE_FIELDS = (
    "transaction_id",
    "user_id",
    "type",
    "amount",
    "related_user_id",
    "plan_id",
    "level",
)


class Transaction(Base):
    """Transaction model - single monetary event."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="transaction_amount_non_negative"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
        Index("ix_transactions_status_type", "status", "type"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    transaction_id: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False
    )

    # Owner and classification
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.PENDING.value,
        index=True,
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Wallet bucket an income credit landed in
    income_category: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )

    # Balance snapshots (total_balance before/after the wallet effect)
    balance_before: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    balance_after: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    # Provenance
    related_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("plans.id", ondelete="SET NULL"), nullable=True
    )
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    roi_percentage: Mapped[Decimal | None] = mapped_column(
        PercentType, nullable=True
    )
    roi_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    related_transaction_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )

    # Settlement
    payment_method: Mapped[str] = mapped_column(
        String(20), default=PaymentMethod.WALLET.value, nullable=False
    )
    payment_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    processed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, index=True, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("status", TransactionStatus.PENDING.value)
        kwargs.setdefault("payment_method", PaymentMethod.WALLET.value)
        super().__init__(**kwargs)

    @validates(*IMMUTABLE_FIELDS)
    def _guard_immutable(self, key: str, value: Any) -> Any:
        if self.id is not None and getattr(self, key) != value:
            raise InvalidTransition(
                entity="transaction", current=f"{key} fixed", target=f"{key} changed"
            )
        return value

    @property
    def is_terminal(self) -> bool:
        """Failed and cancelled records never move again."""
        return self.status in (
            TransactionStatus.FAILED.value,
            TransactionStatus.CANCELLED.value,
        )

    @property
    def credit_category(self) -> str | None:
        """Wallet bucket credited by this transaction, None for non-credits."""
        if self.type == TransactionType.ADMIN_ADJUSTMENT.value:
            return self.income_category
        return self.income_category or INCOME_TRANSACTION_CATEGORIES.get(self.type)

    @property
    def is_wallet_debit(self) -> bool:
        """Completed amount leaves the wallet balances."""
        if self.type == TransactionType.WITHDRAWAL.value:
            return True
        return (
            self.type == TransactionType.PLAN_PURCHASE.value
            and self.payment_method == PaymentMethod.WALLET.value
        )

    @property
    def balance_effect(self) -> Decimal:
        """
        Signed effect on wallet total_balance once completed.

        Income types and admin adjustments add, withdrawals and
        wallet-funded purchases subtract, everything else is neutral.
        """
        if self.credit_category is not None:
            return self.amount
        if self.is_wallet_debit:
            return -self.amount
        return ZERO

    def mark_completed(
        self, processed_by: int | None = None, now: datetime | None = None
    ) -> bool:
        """
        Move to completed.

        Re-invoking on a completed record only refreshes timestamps.

        Args:
            processed_by: Acting admin
            now: Completion moment

        Returns:
            True if the status changed (the caller must then apply the
            wallet effect), False if it was already completed

        Raises:
            InvalidTransition: From failed or cancelled
        """
        now = now or utc_now()
        if self.is_terminal:
            raise InvalidTransition(
                entity="transaction",
                current=self.status,
                target=TransactionStatus.COMPLETED.value,
            )

        changed = self.status != TransactionStatus.COMPLETED.value
        self.status = TransactionStatus.COMPLETED.value
        self.completed_at = now
        if processed_by is not None:
            self.processed_by = processed_by
            self.processed_at = now
        return changed

    def mark_failed(
        self,
        reason: str,
        processed_by: int | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        Move to failed (terminal); reason is stored in notes.

        Raises:
            InvalidTransition: Unless currently pending
        """
        if self.status != TransactionStatus.PENDING.value:
            raise InvalidTransition(
                entity="transaction",
                current=self.status,
                target=TransactionStatus.FAILED.value,
            )
        now = now or utc_now()
        self.status = TransactionStatus.FAILED.value
        self.failed_at = now
        self.notes = reason
        if processed_by is not None:
            self.processed_by = processed_by
            self.processed_at = now

    def cancel(self, reason: str | None = None) -> None:
        """
        Move pending record to cancelled.

        Raises:
            InvalidTransition: Unless currently pending
        """
        if self.status != TransactionStatus.PENDING.value:
            raise InvalidTransition(
                entity="transaction",
                current=self.status,
                target=TransactionStatus.CANCELLED.value,
            )
        self.status = TransactionStatus.CANCELLED.value
        if reason:
            self.notes = reason

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Transaction(transaction_id={self.transaction_id}, "
            f"user_id={self.user_id}, type={self.type}, "
            f"amount={self.amount}, status={self.status})>"
        )
