"""
Account service.

Admin status controls (activate/deactivate a user, freeze a wallet) and
the saved payout destinations a user keeps on their wallet.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.user import User
from mlm_ledger.models.wallet import Wallet
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.access import (
    Principal,
    require_admin,
    require_owner_or_admin,
)
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.utils.exceptions import InvalidRequest
from mlm_ledger.validators.payment_details import validate_payment_details


class AccountService(BaseService):
    """User and wallet status management."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)

    @transaction
    async def set_user_status(
        self, principal: Principal, user_id: int, is_active: bool
    ) -> User:
        """
        Activate or deactivate a user.

        Inactive users cannot buy plans, accrue no ROI and are skipped
        by commission distribution. Their wallet is deactivated with
        them so nothing can be withdrawn.

        Args:
            principal: Acting admin
            user_id: Target user
            is_active: New status

        Returns:
            Updated user

        Raises:
            AccessDenied: Caller is not an admin
            NotFound: User or wallet does not exist
        """
        require_admin(principal, "change user status")
        user = await self.user_repo.lock(user_id)
        wallet = await self.wallet_repo.lock_by_user_id(user_id)
        user.is_active = is_active
        wallet.is_active = is_active
        await self.session.flush()

        self.logger.info(
            "User status changed",
            extra={
                "user_id": user_id,
                "is_active": is_active,
                "admin_id": principal.user_id,
            },
        )
        return user

    @transaction
    async def set_wallet_frozen(
        self, principal: Principal, user_id: int, frozen: bool
    ) -> Wallet:
        """
        Freeze or unfreeze a wallet.

        A frozen wallet still receives income but rejects debits and
        new payout requests.

        Raises:
            AccessDenied: Caller is not an admin
            NotFound: Wallet does not exist
        """
        require_admin(principal, "freeze wallets")
        wallet = await self.wallet_repo.lock_by_user_id(user_id)
        wallet.is_frozen = frozen
        await self.session.flush()

        self.logger.warning(
            "Wallet frozen" if frozen else "Wallet unfrozen",
            extra={"user_id": user_id, "admin_id": principal.user_id},
        )
        return wallet

    @transaction
    async def update_payout_details(
        self,
        principal: Principal,
        user_id: int,
        method: str,
        details: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Save a payout destination for later requests.

        Details are validated like a payout request's and replace any
        previously saved details of the same method.

        Args:
            principal: Owner or admin
            user_id: Wallet owner
            method: bank, crypto, upi or paypal
            details: Method-specific payload

        Returns:
            All saved details keyed by method

        Raises:
            AccessDenied: Caller is neither owner nor admin
            InvalidRequest: Details fail validation
            NotFound: Wallet does not exist
        """
        require_owner_or_admin(principal, user_id, "update payout details")
        is_valid, normalized, error = validate_payment_details(method, details)
        if not is_valid:
            raise InvalidRequest(error, field="payment_details")

        wallet = await self.wallet_repo.lock_by_user_id(user_id)
        # JSON columns are not mutation-tracked; assign a new dict
        wallet.payout_details = {**(wallet.payout_details or {}), method: normalized}
        await self.session.flush()

        self.logger.info(
            "Payout details saved",
            extra={"user_id": user_id, "method": method},
        )
        return wallet.payout_details

    async def get_payout_details(
        self, principal: Principal, user_id: int
    ) -> dict[str, Any]:
        """Saved payout details keyed by method (owner or admin)."""
        require_owner_or_admin(principal, user_id, "view payout details")
        wallet = await self.wallet_repo.get_by_user_id(user_id)
        if wallet is None:
            return {}
        return wallet.payout_details or {}
