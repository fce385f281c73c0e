"""
Settings service.

Runtime-tunable business parameters stored as tagged values. Values in
the settings table override the environment defaults from Settings.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import DEFAULT_SETTINGS
from mlm_ledger.models.setting import Setting
from mlm_ledger.repositories.setting_repository import SettingRepository
from mlm_ledger.services.access import Principal, require_admin
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import (
    InvalidRequest,
    InvalidSettingValue,
    NotFound,
)
from mlm_ledger.validators.setting_value import validate_setting_value


class SettingsService(BaseService):
    """Read and administer configuration entries."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.setting_repo = SettingRepository(session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_value(self, category: str, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Args:
            category: Settings group
            key: Setting key
            default: Returned when the entry is missing or inactive

        Returns:
            Stored JSON value or default
        """
        setting = await self.setting_repo.get_setting(category, key)
        if setting is None or not setting.is_active or setting.value is None:
            return default
        return setting.value

    async def get_decimal(self, category: str, key: str, default: Decimal) -> Decimal:
        """Numeric setting as Decimal."""
        value = await self.get_value(category, key, None)
        if value is None or isinstance(value, bool):
            return Decimal(str(default))
        return Decimal(str(value))

    async def get_int(self, category: str, key: str, default: int) -> int:
        """Numeric setting as int."""
        return int(await self.get_decimal(category, key, Decimal(default)))

    async def get_by_category(self, category: str) -> dict[str, Any]:
        """Active settings of a category as {key: value}."""
        rows = await self.setting_repo.get_by_category(category)
        return {row.key: row.value for row in rows}

    async def get_public_settings(self) -> dict[str, dict[str, Any]]:
        """Public settings grouped as {category: {key: value}}."""
        grouped: dict[str, dict[str, Any]] = {}
        for row in await self.setting_repo.get_public():
            grouped.setdefault(row.category, {})[row.key] = row.value
        return grouped

    # ------------------------------------------------------------------
    # Writes (admin only)
    # ------------------------------------------------------------------

    async def _require_setting(self, category: str, key: str) -> Setting:
        setting = await self.setting_repo.get_setting(category, key)
        if setting is None:
            raise NotFound("Setting", category=category, key=key)
        return setting

    def _apply(self, setting: Setting, value: Any, admin_id: int) -> None:
        valid, normalized, error = validate_setting_value(
            setting.value_type, value, setting.validation
        )
        if not valid:
            raise InvalidSettingValue(setting.category, setting.key, error)

        setting.value = normalized
        setting.last_modified_by = admin_id
        setting.last_modified_at = utc_now()

    @transaction
    async def set_value(
        self, principal: Principal, category: str, key: str, value: Any
    ) -> Setting:
        """
        Update a setting value after validating it against its type and rules.

        Args:
            principal: Acting admin
            category: Settings group
            key: Setting key
            value: New value

        Returns:
            Updated setting

        Raises:
            AccessDenied: If principal is not an admin
            NotFound: If the setting does not exist
            InvalidSettingValue: If value violates type or rules
        """
        require_admin(principal, "update settings")
        setting = await self._require_setting(category, key)
        old_value = setting.value
        self._apply(setting, value, principal.user_id)
        await self.session.flush()

        self.logger.info(
            "Setting updated",
            extra={
                "setting": setting.full_key,
                "old_value": old_value,
                "new_value": setting.value,
                "admin_id": principal.user_id,
            },
        )
        return setting

    @transaction
    async def bulk_update(
        self, principal: Principal, updates: list[dict[str, Any]]
    ) -> list[Setting]:
        """
        Update several settings all-or-nothing.

        Args:
            principal: Acting admin
            updates: Items with category, key and value

        Returns:
            Updated settings
        """
        require_admin(principal, "update settings")
        updated = []
        for item in updates:
            try:
                category, key, value = item["category"], item["key"], item["value"]
            except KeyError as e:
                raise InvalidRequest(
                    "Each update needs category, key and value", missing=str(e)
                ) from e
            setting = await self._require_setting(category, key)
            self._apply(setting, value, principal.user_id)
            updated.append(setting)

        await self.session.flush()
        self.logger.info(
            "Settings bulk updated",
            extra={
                "settings": [s.full_key for s in updated],
                "admin_id": principal.user_id,
            },
        )
        return updated

    @transaction
    async def reset_to_default(
        self, principal: Principal, category: str, key: str
    ) -> Setting:
        """Restore a setting to its default value."""
        require_admin(principal, "reset settings")
        setting = await self._require_setting(category, key)
        setting.value = setting.default_value
        setting.last_modified_by = principal.user_id
        setting.last_modified_at = utc_now()
        await self.session.flush()

        self.logger.info(
            "Setting reset to default",
            extra={"setting": setting.full_key, "admin_id": principal.user_id},
        )
        return setting

    @transaction
    async def create_defaults(self) -> int:
        """
        Seed default settings that are not present yet.

        Returns:
            Number of settings created
        """
        created = 0
        for entry in DEFAULT_SETTINGS:
            existing = await self.setting_repo.get_setting(
                entry["category"], entry["key"]
            )
            if existing is not None:
                continue
            self.session.add(Setting(**entry))
            created += 1

        await self.session.flush()
        self.logger.info("Default settings seeded", extra={"created": created})
        return created
