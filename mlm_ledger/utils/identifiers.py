"""
Identifier generation.

Transaction and payout identifiers are human-decodable:
``<prefix><epoch milliseconds><random upper-case base36 suffix>``.
"""

import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime

from mlm_ledger.config.business_constants import (
    PAYOUT_ID_PREFIX,
    PAYOUT_ID_SUFFIX_LENGTH,
    REFERRAL_CODE_BYTES,
    TRANSACTION_ID_PREFIX,
    TRANSACTION_ID_SUFFIX_LENGTH,
)
from mlm_ledger.utils.datetime_utils import utc_now

_ALPHABET = string.digits + string.ascii_uppercase


@dataclass(frozen=True)
class DecodedReference:
    """Parts of a generated identifier."""

    prefix: str
    created_at: datetime
    suffix: str


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _generate(prefix: str, suffix_length: int, now: datetime | None = None) -> str:
    now = now or utc_now()
    millis = int(now.timestamp() * 1000)
    return f"{prefix}{millis}{_random_suffix(suffix_length)}"


def generate_transaction_id(now: datetime | None = None) -> str:
    """Generate transaction reference, e.g. TXN1718000000000A1B2C3."""
    return _generate(TRANSACTION_ID_PREFIX, TRANSACTION_ID_SUFFIX_LENGTH, now)


def generate_payout_id(now: datetime | None = None) -> str:
    """Generate payout reference, e.g. PO1718000000000X9Z1."""
    return _generate(PAYOUT_ID_PREFIX, PAYOUT_ID_SUFFIX_LENGTH, now)


def generate_referral_code() -> str:
    """Generate 8-character upper-case hex referral code."""
    return secrets.token_hex(REFERRAL_CODE_BYTES).upper()


def decode_reference(reference: str) -> DecodedReference:
    """
    Split a generated identifier into prefix, timestamp and suffix.

    Args:
        reference: Transaction or payout identifier

    Returns:
        DecodedReference

    Raises:
        ValueError: If reference was not produced by this module
    """
    for prefix, suffix_length in (
        (TRANSACTION_ID_PREFIX, TRANSACTION_ID_SUFFIX_LENGTH),
        (PAYOUT_ID_PREFIX, PAYOUT_ID_SUFFIX_LENGTH),
    ):
        if not reference.startswith(prefix):
            continue
        body = reference[len(prefix):]
        millis, suffix = body[:-suffix_length], body[-suffix_length:]
        if not millis.isdigit() or len(suffix) != suffix_length:
            break
        created_at = datetime.fromtimestamp(int(millis) / 1000, tz=UTC)
        return DecodedReference(prefix=prefix, created_at=created_at, suffix=suffix)

    raise ValueError(f"Not a ledger reference: {reference}")
