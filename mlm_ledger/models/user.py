"""
User model.

Represents a registered member placed in the sponsor tree.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

import bcrypt
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import UserRole
from mlm_ledger.models.types import MoneyType, UTCDateTime
from mlm_ledger.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from mlm_ledger.models.wallet import Wallet


class User(Base):
    """User model - node of the sponsor forest."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "total_team_size >= 0", name="user_team_size_non_negative"
        ),
        CheckConstraint(
            "direct_referral_count >= 0",
            name="user_direct_referrals_non_negative",
        ),
        CheckConstraint(
            "sponsor_id IS NULL OR sponsor_id != id",
            name="user_not_own_sponsor",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    username: Mapped[str] = mapped_column(
        String(30), unique=True, index=True, nullable=False
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.USER.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    # Referral tree
    sponsor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    referral_code: Mapped[str] = mapped_column(
        String(20), unique=True, index=True, nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    direct_referral_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_team_size: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Plan holding
    current_plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("plans.id", ondelete="SET NULL"), nullable=True
    )
    plan_activated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    plan_invested_amount: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    roi_days_paid: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    last_roi_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Earnings (every completed income credit)
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )
    last_login: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Relationships (load explicitly through repositories in async code)
    sponsor: Mapped[Optional["User"]] = relationship(
        "User",
        remote_side=[id],
        back_populates="referrals",
        foreign_keys=[sponsor_id],
        lazy="raise",
    )
    referrals: Mapped[list["User"]] = relationship(
        "User",
        back_populates="sponsor",
        foreign_keys=[sponsor_id],
        lazy="raise",
    )
    wallet: Mapped["Wallet | None"] = relationship(
        "Wallet",
        back_populates="user",
        uselist=False,
        lazy="raise",
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("role", UserRole.USER.value)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("level", 1)
        kwargs.setdefault("direct_referral_count", 0)
        kwargs.setdefault("total_team_size", 0)
        kwargs.setdefault("roi_days_paid", 0)
        kwargs.setdefault("total_earnings", Decimal("0"))
        super().__init__(**kwargs)

    @property
    def is_admin(self) -> bool:
        """True for admin principals."""
        return self.role == UserRole.ADMIN.value

    def set_password(self, password: str) -> None:
        """
        Set password with bcrypt hashing.

        Args:
            password: Plain text password to hash and store
        """
        self.password_hash = bcrypt.hashpw(
            password.encode(), bcrypt.gensalt()
        ).decode()

    def verify_password(self, password: str) -> bool:
        """
        Verify password against stored hash.

        Args:
            password: Plain text password to verify

        Returns:
            True if password matches, False otherwise
        """
        if not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode(), self.password_hash.encode())

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, username={self.username}, "
            f"sponsor_id={self.sponsor_id}, level={self.level})>"
        )
