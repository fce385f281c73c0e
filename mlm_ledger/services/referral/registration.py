"""
User registration.

Creates the user, their wallet and the sponsor edge, and updates the
upline counters in one unit.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import (
    REFERRAL_CODE_MAX_ATTEMPTS,
    SETTING_MAX_DAILY_WITHDRAWAL,
    SETTING_MIN_WITHDRAWAL,
)
from mlm_ledger.config.settings import settings
from mlm_ledger.models.user import User
from mlm_ledger.models.wallet import Wallet
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.services.referral.chain_manager import ReferralChainManager
from mlm_ledger.services.settings_service import SettingsService
from mlm_ledger.utils.exceptions import InvalidRequest, NotFound
from mlm_ledger.utils.identifiers import generate_referral_code
from mlm_ledger.validators.common import (
    normalize_email,
    validate_email,
    validate_password,
    validate_username,
)


class RegistrationService(BaseService):
    """Registers users into the sponsor tree."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.chain = ReferralChainManager(session)
        self.settings_service = SettingsService(session)

    async def _unique_referral_code(self) -> str:
        for _ in range(REFERRAL_CODE_MAX_ATTEMPTS):
            code = generate_referral_code()
            if not await self.user_repo.exists(referral_code=code):
                return code
        raise InvalidRequest("Could not allocate a unique referral code")

    @transaction
    async def register_user(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str,
        phone: str | None = None,
        sponsor_code: str | None = None,
    ) -> User:
        """
        Register a user with an optional sponsor.

        Args:
            username: Unique login name
            email: Unique email
            password: Plain text password (hashed with bcrypt)
            full_name: Display name
            phone: Optional phone number
            sponsor_code: Referral code of the sponsor

        Returns:
            Created user

        Raises:
            InvalidRequest: On invalid or duplicate username/email
            NotFound: If sponsor_code is unknown or belongs to an inactive user
        """
        for validator, value, field in (
            (validate_username, username, "username"),
            (validate_email, email, "email"),
            (validate_password, password, "password"),
        ):
            is_valid, error = validator(value)
            if not is_valid:
                raise InvalidRequest(error, field=field)
        if not full_name or not full_name.strip():
            raise InvalidRequest("Full name is required", field="full_name")

        username = username.strip()
        email = normalize_email(email)
        if await self.user_repo.get_by_username(username):
            raise InvalidRequest("Username already taken", field="username")
        if await self.user_repo.get_by_email(email):
            raise InvalidRequest("Email already registered", field="email")

        sponsor = None
        if sponsor_code:
            sponsor = await self.user_repo.get_by_referral_code(sponsor_code)
            if sponsor is None or not sponsor.is_active:
                raise NotFound("Sponsor", referral_code=sponsor_code)

        user = User(
            username=username,
            email=email,
            full_name=full_name.strip(),
            phone=phone,
            sponsor_id=sponsor.id if sponsor else None,
            referral_code=await self._unique_referral_code(),
            level=sponsor.level + 1 if sponsor else 1,
        )
        user.set_password(password)
        self.session.add(user)
        await self.session.flush()

        wallet = Wallet(
            user_id=user.id,
            min_withdrawal=await self.settings_service.get_decimal(
                *SETTING_MIN_WITHDRAWAL, settings.default_min_withdrawal
            ),
            max_withdrawal_per_day=await self.settings_service.get_decimal(
                *SETTING_MAX_DAILY_WITHDRAWAL,
                settings.default_max_withdrawal_per_day,
            ),
        )
        self.session.add(wallet)
        await self.session.flush()

        if sponsor:
            await self.chain.increment_team_size_upline(user)

        self.logger.info(
            "User registered",
            extra={
                "user_id": user.id,
                "username": user.username,
                "sponsor_id": user.sponsor_id,
                "level": user.level,
            },
        )
        return user
