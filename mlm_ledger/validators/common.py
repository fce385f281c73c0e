"""
Common validators for registration input.

Each validator returns a tuple of (is_valid, error_message).
"""

import re

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LENGTH = 6


def validate_username(username: str) -> tuple[bool, str | None]:
    """
    Validate username.

    Examples:
        >>> validate_username("alice_01")
        (True, None)
        >>> validate_username("a!")
        (False, "Username must be 3-20 letters, digits or underscores")
    """
    if not username or not isinstance(username, str):
        return False, "Username is empty"

    if not USERNAME_PATTERN.match(username.strip()):
        return False, "Username must be 3-20 letters, digits or underscores"

    return True, None


def validate_email(email: str) -> tuple[bool, str | None]:
    """
    Validate email address.

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email is empty"

    email = email.strip()

    if len(email) > 255:
        return False, "Email is too long (maximum 255 characters)"

    if email.count("@") != 1:
        return False, "Email must contain exactly one '@'"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    return True, None


def validate_password(password: str) -> tuple[bool, str | None]:
    """
    Validate password strength.

    Requires at least 6 characters with a lower-case letter, an
    upper-case letter and a digit.
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

    if not (
        re.search(r"[a-z]", password)
        and re.search(r"[A-Z]", password)
        and re.search(r"\d", password)
    ):
        return False, (
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )

    return True, None


def normalize_email(email: str) -> str:
    """Lower-case and strip email."""
    return email.strip().lower()
