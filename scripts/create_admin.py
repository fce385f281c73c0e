#!/usr/bin/env python3
"""Register a user and grant the admin role."""

import argparse
import asyncio
import sys

from loguru import logger

from mlm_ledger.config.database import async_engine, async_session_maker
from mlm_ledger.config.logging import setup_logging
from mlm_ledger.models import UserRole
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.services.referral import RegistrationService
from mlm_ledger.utils.exceptions import LedgerError


async def create_admin(
    username: str, email: str, password: str, full_name: str
) -> int:
    """
    Create an admin account, or promote an existing user.

    Returns:
        Process exit code
    """
    async with async_session_maker() as session:
        user_repo = UserRepository(session)
        user = await user_repo.get_by_username(username)

        if user is None:
            try:
                user = await RegistrationService(session).register_user(
                    username=username,
                    email=email,
                    password=password,
                    full_name=full_name,
                )
            except LedgerError as e:
                logger.error(f"Registration failed: {e}")
                return 1

        user.role = UserRole.ADMIN.value
        await session.commit()
        logger.success(f"User {user.username} (id={user.id}) is now an admin")

    await async_engine.dispose()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("username")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--full-name", default="Administrator")
    args = parser.parse_args()

    setup_logging()
    sys.exit(
        asyncio.run(
            create_admin(args.username, args.email, args.password, args.full_name)
        )
    )


if __name__ == "__main__":
    main()
