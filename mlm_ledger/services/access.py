"""
Authorization checks.

The core never authenticates; callers hand in the requesting principal
and the core enforces ownership and role at the point of action.
"""

from dataclasses import dataclass

from loguru import logger

from mlm_ledger.models.enums import UserRole
from mlm_ledger.utils.exceptions import AccessDenied


@dataclass(frozen=True)
class Principal:
    """Authenticated requester supplied by the calling layer."""

    user_id: int
    role: str = UserRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def admin(cls, user_id: int) -> "Principal":
        return cls(user_id=user_id, role=UserRole.ADMIN.value)


def require_admin(principal: Principal, action: str) -> None:
    """
    Fail unless principal is an admin.

    Raises:
        AccessDenied
    """
    if not principal.is_admin:
        logger.warning(
            "Admin action refused",
            extra={"action": action, "user_id": principal.user_id},
        )
        raise AccessDenied(action, principal.user_id)


def require_owner(principal: Principal, owner_id: int, action: str) -> None:
    """
    Fail unless principal owns the entity.

    Raises:
        AccessDenied
    """
    if principal.user_id != owner_id:
        logger.warning(
            "Owner action refused",
            extra={
                "action": action,
                "user_id": principal.user_id,
                "owner_id": owner_id,
            },
        )
        raise AccessDenied(action, principal.user_id)


def require_owner_or_admin(principal: Principal, owner_id: int, action: str) -> None:
    """Fail unless principal owns the entity or is an admin."""
    if principal.is_admin:
        return
    require_owner(principal, owner_id, action)
