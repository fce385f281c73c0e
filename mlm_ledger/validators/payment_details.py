"""
Payout payment details validation.

Each payout method carries its own detail payload; the payload is
validated by a pydantic model selected by the method tag.
"""

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)


class _Details(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")


class BankDetails(_Details):
    """Bank transfer details."""

    method: Literal["bank"] = "bank"
    account_number: str = Field(min_length=6, max_length=34)
    account_holder_name: str = Field(min_length=2, max_length=100)
    bank_name: str = Field(min_length=2, max_length=100)
    ifsc_code: str | None = Field(
        default=None, pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$"
    )
    branch: str | None = Field(default=None, max_length=100)


class CryptoDetails(_Details):
    """Crypto wallet details."""

    method: Literal["crypto"] = "crypto"
    type: Literal["bitcoin", "ethereum", "usdt"]
    address: str = Field(min_length=26, max_length=100)
    network: str | None = Field(default=None, max_length=30)


class UpiDetails(_Details):
    """UPI details."""

    method: Literal["upi"] = "upi"
    upi_id: str = Field(pattern=r"^[A-Za-z0-9_.\-]{2,256}@[a-zA-Z]{2,64}$")
    name: str | None = Field(default=None, max_length=100)


class PaypalDetails(_Details):
    """PayPal details."""

    method: Literal["paypal"] = "paypal"
    email: str = Field(pattern=r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    name: str | None = Field(default=None, max_length=100)


PaymentDetails = Annotated[
    BankDetails | CryptoDetails | UpiDetails | PaypalDetails,
    Field(discriminator="method"),
]

_payment_details_adapter = TypeAdapter(PaymentDetails)


def validate_payment_details(
    method: str, details: dict[str, Any] | None
) -> tuple[bool, dict[str, Any] | None, str | None]:
    """
    Validate payment details for a payout method.

    Args:
        method: bank, crypto, upi or paypal
        details: Method-specific payload

    Returns:
        Tuple of (is_valid, normalized_details, error_message)

    Examples:
        >>> validate_payment_details("upi", {"upi_id": "alice@okbank"})[0]
        True
        >>> validate_payment_details("upi", {"address": "x"})[0]
        False
    """
    if not details or not isinstance(details, dict):
        return False, None, "Payment details are required"

    payload = {**details, "method": method}
    try:
        parsed = _payment_details_adapter.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return False, None, f"{location}: {first['msg']}"

    return True, parsed.model_dump(exclude_none=True), None
