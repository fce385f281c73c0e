"""
Tests for the transaction record.

Covers status moves, the wallet effect of each type and the
immutability of identity fields.
"""

from decimal import Decimal

import pytest

from mlm_ledger.models import Transaction, TransactionStatus
from mlm_ledger.utils.exceptions import InvalidTransition


def make_tx(type: str = "roi_income", amount: str = "10", **fields) -> Transaction:
    return Transaction(
        transaction_id="TXN1718000000000ABC123",
        user_id=1,
        type=type,
        amount=Decimal(amount),
        description="test",
        **fields,
    )


class TestBalanceEffect:
    """Test the signed effect of each transaction type."""

    @pytest.mark.parametrize(
        "type_, category",
        [
            ("direct_income", "direct"),
            ("level_income", "level"),
            ("roi_income", "roi"),
            ("bonus_income", "bonus"),
            ("referral_bonus", "bonus"),
        ],
    )
    def test_income_types_credit(self, type_, category):
        """Income types add to their bucket."""
        tx = make_tx(type_)

        assert tx.credit_category == category
        assert tx.balance_effect == Decimal("10")

    def test_admin_adjustment_uses_stored_category(self):
        """Adjustments credit the category recorded on the row."""
        tx = make_tx("admin_adjustment", income_category="level")

        assert tx.credit_category == "level"
        assert tx.balance_effect == Decimal("10")

    def test_withdrawal_debits(self):
        """Withdrawals subtract."""
        assert make_tx("withdrawal").balance_effect == Decimal("-10")

    def test_wallet_purchase_debits(self):
        """Plan purchases paid from the wallet subtract."""
        tx = make_tx("plan_purchase", payment_method="wallet")

        assert tx.is_wallet_debit is True
        assert tx.balance_effect == Decimal("-10")

    def test_external_purchase_is_neutral(self):
        """Plan purchases paid externally do not touch the wallet."""
        tx = make_tx("plan_purchase", payment_method="crypto")

        assert tx.credit_category is None
        assert tx.balance_effect == Decimal("0")

    def test_investment_is_neutral(self):
        """Investment records are informational."""
        assert make_tx("investment").balance_effect == Decimal("0")


class TestTransactionStatus:
    """Test status moves."""

    def test_new_transaction_is_pending(self):
        """Records start pending with the wallet payment method."""
        tx = make_tx()

        assert tx.status == TransactionStatus.PENDING.value
        assert tx.payment_method == "wallet"

    def test_complete_reports_edge(self):
        """First completion returns True, later ones False."""
        tx = make_tx()

        assert tx.mark_completed(processed_by=5) is True
        assert tx.processed_by == 5
        first_completed_at = tx.completed_at

        assert tx.mark_completed() is False
        assert tx.status == TransactionStatus.COMPLETED.value
        assert tx.completed_at >= first_completed_at

    def test_fail_stores_reason(self):
        """Failed records keep the reason in notes."""
        tx = make_tx()

        tx.mark_failed("bank rejected")

        assert tx.status == TransactionStatus.FAILED.value
        assert tx.notes == "bank rejected"
        assert tx.failed_at is not None

    def test_failed_is_terminal(self):
        """Failed records cannot be completed."""
        tx = make_tx()
        tx.mark_failed("bank rejected")

        with pytest.raises(InvalidTransition):
            tx.mark_completed()

    def test_cancel_only_pending(self):
        """Completed records cannot be cancelled."""
        tx = make_tx()
        tx.mark_completed()

        with pytest.raises(InvalidTransition):
            tx.cancel()

    def test_cancelled_cannot_fail(self):
        """Cancelled records are terminal."""
        tx = make_tx()
        tx.cancel("duplicate")

        assert tx.notes == "duplicate"
        with pytest.raises(InvalidTransition):
            tx.mark_failed("late")


class TestImmutableFields:
    """Test identity fields after persistence."""

    def test_persisted_amount_cannot_change(self):
        """Once the row has an id, amount is fixed."""
        tx = make_tx()
        tx.id = 1

        with pytest.raises(InvalidTransition):
            tx.amount = Decimal("20")

    def test_same_value_is_allowed(self):
        """Re-assigning the same value is not a change."""
        tx = make_tx()
        tx.id = 1

        tx.amount = Decimal("10")

        assert tx.amount == Decimal("10")
