"""
Tests for input validators.

Covers registration fields, payout payment details and setting values.
"""

from decimal import Decimal

import pytest

from mlm_ledger.validators import (
    normalize_email,
    validate_email,
    validate_password,
    validate_payment_details,
    validate_setting_value,
    validate_username,
)


class TestRegistrationValidators:
    """Test username, email and password rules."""

    @pytest.mark.parametrize("username", ["alice", "bob_01", "ABC"])
    def test_valid_usernames(self, username):
        assert validate_username(username) == (True, None)

    @pytest.mark.parametrize("username", ["", "ab", "a" * 21, "bad name", "x!y"])
    def test_invalid_usernames(self, username):
        is_valid, error = validate_username(username)

        assert is_valid is False
        assert error

    def test_valid_email(self):
        assert validate_email("alice@example.com") == (True, None)

    @pytest.mark.parametrize(
        "email", ["", "alice", "a@@example.com", "alice@example", "a" * 250 + "@x.com"]
    )
    def test_invalid_emails(self, email):
        assert validate_email(email)[0] is False

    def test_normalize_email(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    def test_password_strength(self):
        """Needs length, upper, lower and a digit."""
        assert validate_password("Secret1")[0] is True
        assert validate_password("Sh0rt")[0] is False
        assert validate_password("alllower1")[0] is False
        assert validate_password("NoDigitsHere")[0] is False


class TestPaymentDetails:
    """Test per-method payout details."""

    def test_bank(self):
        is_valid, details, error = validate_payment_details(
            "bank",
            {
                "account_number": "12345678",
                "account_holder_name": "Alice Doe",
                "bank_name": "First Bank",
                "ifsc_code": "ABCD0123456",
            },
        )

        assert is_valid is True
        assert error is None
        assert details["method"] == "bank"
        assert details["ifsc_code"] == "ABCD0123456"

    def test_bank_bad_ifsc(self):
        is_valid, details, error = validate_payment_details(
            "bank",
            {
                "account_number": "12345678",
                "account_holder_name": "Alice Doe",
                "bank_name": "First Bank",
                "ifsc_code": "1234",
            },
        )

        assert is_valid is False
        assert details is None
        assert "ifsc_code" in error

    def test_crypto(self):
        is_valid, details, _ = validate_payment_details(
            "crypto",
            {"type": "usdt", "address": "TXyz1234567890abcdefghijklmnop", "network": "TRC20"},
        )

        assert is_valid is True
        assert details["type"] == "usdt"

    def test_crypto_unknown_coin(self):
        assert validate_payment_details(
            "crypto", {"type": "doge", "address": "D" * 30}
        )[0] is False

    def test_upi_strips_whitespace(self):
        is_valid, details, _ = validate_payment_details("upi", {"upi_id": " alice@okbank "})

        assert is_valid is True
        assert details == {"method": "upi", "upi_id": "alice@okbank"}

    def test_upi_handle_rules(self):
        """The handle needs two characters before the provider."""
        assert validate_payment_details("upi", {"upi_id": "al.ice_1@okbank"})[0] is True
        assert validate_payment_details("upi", {"upi_id": "a@okbank"})[0] is False
        assert validate_payment_details("upi", {"upi_id": "alice@ok1"})[0] is False

    def test_paypal(self):
        assert validate_payment_details("paypal", {"email": "alice@example.com"})[0] is True

    def test_extra_fields_rejected(self):
        """Details of another method do not pass."""
        assert validate_payment_details("upi", {"upi_id": "al@okbank", "iban": "X"})[0] is False

    def test_missing_details(self):
        assert validate_payment_details("bank", None) == (
            False,
            None,
            "Payment details are required",
        )

    def test_unknown_method(self):
        assert validate_payment_details("cash", {"amount": 1})[0] is False


class TestSettingValue:
    """Test tagged setting values and their rules."""

    def test_number_within_range(self):
        assert validate_setting_value("number", 5, {"min": 1, "max": 20}) == (True, 5, None)

    def test_number_out_of_range(self):
        is_valid, _, error = validate_setting_value("number", 25, {"min": 1, "max": 20})

        assert is_valid is False
        assert error == "Value must be at most 20"

    def test_fractional_number_is_json_ready(self):
        assert validate_setting_value("number", "2.5") == (True, 2.5, None)

    def test_boolean_is_not_a_number(self):
        assert validate_setting_value("number", True)[0] is False

    def test_strict_boolean(self):
        assert validate_setting_value("boolean", True) == (True, True, None)
        assert validate_setting_value("boolean", "yes")[0] is False

    def test_string_rules(self):
        rules = {"required": True, "max_length": 5, "pattern": r"[a-z]+"}

        assert validate_setting_value("string", "abc", rules)[0] is True
        assert validate_setting_value("string", "", rules)[2] == "Value is required"
        assert validate_setting_value("string", "abcdef", rules)[0] is False
        assert validate_setting_value("string", "ABC", rules)[0] is False

    def test_options(self):
        rules = {"options": ["daily", "weekly"]}

        assert validate_setting_value("string", "weekly", rules)[0] is True
        assert validate_setting_value("string", "hourly", rules)[0] is False

    def test_array_and_object(self):
        assert validate_setting_value("array", [1, 2], {"min_length": 1})[0] is True
        assert validate_setting_value("object", {"a": 1}) == (True, {"a": 1}, None)
        assert validate_setting_value("object", [1])[0] is False

    def test_unknown_type(self):
        assert validate_setting_value("date", "2024-01-01")[0] is False

    def test_decimal_input(self):
        assert validate_setting_value("number", Decimal("10")) == (True, 10, None)
