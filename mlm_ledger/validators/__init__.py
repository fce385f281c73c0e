"""
Input validators.

Each validator returns a tuple whose first element tells whether the
value is valid; callers translate failures into InvalidRequest.
"""

from mlm_ledger.validators.common import (
    normalize_email,
    validate_email,
    validate_password,
    validate_username,
)
from mlm_ledger.validators.payment_details import validate_payment_details
from mlm_ledger.validators.setting_value import validate_setting_value

__all__ = [
    "normalize_email",
    "validate_email",
    "validate_password",
    "validate_payment_details",
    "validate_setting_value",
    "validate_username",
]
