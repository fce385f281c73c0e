"""
Setting model.

Admin-editable runtime configuration keyed by (category, key). The value
is a tagged union: ``value_type`` names the tag and SettingValue
validators enforce it together with the ``validation`` rules.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.enums import SettingValueType
from mlm_ledger.models.types import UTCDateTime
from mlm_ledger.utils.datetime_utils import utc_now


class Setting(Base):
    """Setting model - single configuration entry."""

    __tablename__ = "settings"
    __table_args__ = (
        UniqueConstraint("category", "key", name="uq_settings_category_key"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    category: Mapped[str] = mapped_column(String(30), index=True, nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)

    # Tagged value
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    value_type: Mapped[str] = mapped_column(
        String(20), default=SettingValueType.STRING.value, nullable=False
    )
    default_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    validation: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    # Presentation
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    group: Mapped[str | None] = mapped_column(String(50), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Audit
    last_modified_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    last_modified_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("validation", {})
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("is_public", False)
        kwargs.setdefault("display_order", 0)
        if "default_value" not in kwargs:
            kwargs["default_value"] = kwargs.get("value")
        super().__init__(**kwargs)

    @property
    def full_key(self) -> str:
        """category.key"""
        return f"{self.category}.{self.key}"

    def __repr__(self) -> str:
        """String representation."""
        return f"<Setting({self.full_key}={self.value!r})>"
