"""
Ledger service.

Pairs every wallet mutation with its Transaction record inside one unit
of work. Methods prefixed with ``post``/``settle`` only flush so that
composite operations (plan purchase, commission distribution, payout
settlement) can share a single commit; the public methods commit.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.enums import (
    INCOME_TRANSACTION_CATEGORIES,
    IncomeCategory,
    PaymentMethod,
    TransactionType,
)
from mlm_ledger.models.transaction import Transaction
from mlm_ledger.models.wallet import CATEGORY_FIELDS, Wallet, WithdrawalEligibility
from mlm_ledger.repositories.user_repository import UserRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.access import Principal, require_admin
from mlm_ledger.services.base_service import BaseService, transaction
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import InvalidCategory, InvalidRequest, NotFound
from mlm_ledger.utils.identifiers import generate_transaction_id
from mlm_ledger.utils.money import non_negative_money, positive_money


def _category_value(category: str | IncomeCategory) -> str:
    value = category.value if isinstance(category, IncomeCategory) else category
    if value not in CATEGORY_FIELDS:
        raise InvalidCategory(category)
    return value


class LedgerService(BaseService):
    """Wallet balances and their transaction trail."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.wallet_repo = WalletRepository(session)
        self.user_repo = UserRepository(session)

    # ------------------------------------------------------------------
    # Unit-of-work building blocks (flush only)
    # ------------------------------------------------------------------

    async def post_transaction(
        self,
        user_id: int,
        type: str | TransactionType,
        amount: Any,
        description: str,
        processed_by: int | None = None,
        now: datetime | None = None,
        **fields: Any,
    ) -> Transaction:
        """
        Record a transaction and settle it immediately.

        Args:
            user_id: Owner ID
            type: Transaction type
            amount: Non-negative amount
            description: Human-readable description
            processed_by: Acting admin, if any
            now: Settlement moment
            **fields: Remaining Transaction columns

        Returns:
            Completed transaction
        """
        type_value = type.value if isinstance(type, TransactionType) else type
        tx = Transaction(
            transaction_id=fields.pop("transaction_id", None)
            or generate_transaction_id(now),
            user_id=user_id,
            type=type_value,
            amount=non_negative_money(amount),
            description=description,
            **fields,
        )
        self.session.add(tx)
        await self.session.flush()
        await self.settle(tx, processed_by=processed_by, now=now)
        return tx

    async def post_credit(
        self,
        user_id: int,
        category: str | IncomeCategory,
        amount: Any,
        type: str | TransactionType,
        description: str,
        **fields: Any,
    ) -> Transaction:
        """
        Credit an income category with a completed transaction.

        Raises:
            InvalidAmount: If amount <= 0
            InvalidCategory: If category is unknown
            NotFound: If the user has no wallet
        """
        amount = positive_money(amount)
        category = _category_value(category)
        return await self.post_transaction(
            user_id,
            type,
            amount,
            description,
            income_category=category,
            **fields,
        )

    async def post_debit(
        self,
        user_id: int,
        amount: Any,
        type: str | TransactionType,
        description: str,
        **fields: Any,
    ) -> Transaction:
        """
        Deduct from the wallet with a completed transaction.

        Only withdrawals and wallet-funded plan purchases move money out.

        Raises:
            InvalidAmount: If amount <= 0
            InsufficientBalance: If amount > available balance
            WithdrawalNotEligible: If the wallet is frozen or inactive
            InvalidRequest: If type is not a debit type
        """
        amount = positive_money(amount)
        type_value = type.value if isinstance(type, TransactionType) else type
        if type_value not in (
            TransactionType.WITHDRAWAL.value,
            TransactionType.PLAN_PURCHASE.value,
        ):
            raise InvalidRequest(
                f"Transaction type {type_value} cannot debit a wallet", type=type_value
            )
        fields["payment_method"] = PaymentMethod.WALLET.value
        return await self.post_transaction(
            user_id, type_value, amount, description, **fields
        )

    async def settle(
        self,
        tx: Transaction,
        processed_by: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Complete a transaction and apply its wallet effect exactly once.

        The effect is applied only on the pending -> completed edge; on an
        already completed record only timestamps move.

        Args:
            tx: Transaction (pending or completed)
            processed_by: Acting admin
            now: Completion moment

        Returns:
            True if the wallet effect was applied
        """
        changed = tx.mark_completed(processed_by=processed_by, now=now)
        if not changed:
            self.logger.info(
                "Transaction already completed, effect not re-applied",
                extra={"transaction_id": tx.transaction_id},
            )
            await self.session.flush()
            return False

        await self._apply_effect(tx)
        await self.session.flush()
        return True

    async def _apply_effect(self, tx: Transaction) -> None:
        category = tx.credit_category
        is_debit = tx.is_wallet_debit
        if (category is None and not is_debit) or tx.amount == 0:
            return

        wallet = await self.wallet_repo.lock_by_user_id(tx.user_id)
        tx.balance_before = wallet.recompute_total()

        if category is not None:
            wallet.add_income(category, tx.amount)
            if tx.type in INCOME_TRANSACTION_CATEGORIES:
                await self.user_repo.add_earnings(tx.user_id, tx.amount)
        else:
            deducted = wallet.deduct_balance(tx.amount)
            self.logger.debug(
                "Proportional deduction",
                extra={
                    "transaction_id": tx.transaction_id,
                    "deducted": {k: str(v) for k, v in deducted.items()},
                },
            )

        tx.balance_after = wallet.total_balance
        wallet.last_transaction_id = tx.transaction_id

        self.logger.info(
            "Wallet updated",
            extra={
                "user_id": tx.user_id,
                "transaction_id": tx.transaction_id,
                "type": tx.type,
                "amount": str(tx.amount),
                "balance_before": str(tx.balance_before),
                "balance_after": str(tx.balance_after),
            },
        )

    # ------------------------------------------------------------------
    # Public operations (one commit each)
    # ------------------------------------------------------------------

    @transaction
    async def credit(
        self,
        user_id: int,
        category: str | IncomeCategory,
        amount: Any,
        type: str | TransactionType,
        description: str,
        **fields: Any,
    ) -> Transaction:
        """
        Credit a wallet income category.

        Args:
            user_id: Wallet owner
            category: direct, level, roi or bonus
            amount: Positive amount
            type: Transaction type to record
            description: Human-readable description
            **fields: Provenance (related_user_id, plan_id, level, ...)

        Returns:
            Completed transaction with balance snapshots
        """
        return await self.post_credit(
            user_id, category, amount, type, description, **fields
        )

    @transaction
    async def debit(
        self,
        user_id: int,
        amount: Any,
        type: str | TransactionType,
        description: str,
        **fields: Any,
    ) -> Transaction:
        """Deduct from a wallet proportionally across categories."""
        return await self.post_debit(user_id, amount, type, description, **fields)

    @transaction
    async def apply_transaction(
        self, tx: Transaction, processed_by: int | None = None
    ) -> bool:
        """Complete a pending transaction and apply its wallet effect once."""
        return await self.settle(tx, processed_by=processed_by)

    @transaction
    async def admin_adjustment(
        self,
        principal: Principal,
        user_id: int,
        amount: Any,
        category: str | IncomeCategory = IncomeCategory.BONUS,
        description: str | None = None,
    ) -> Transaction:
        """
        Admin credit to a user's wallet.

        Raises:
            AccessDenied: If principal is not an admin
        """
        require_admin(principal, "adjust wallet")
        category = _category_value(category)
        tx = await self.post_credit(
            user_id,
            category,
            amount,
            TransactionType.ADMIN_ADJUSTMENT,
            description or f"Admin adjustment ({category})",
            payment_method=PaymentMethod.ADMIN.value,
            processed_by=principal.user_id,
        )
        self.logger.info(
            "Admin adjustment applied",
            extra={
                "admin_id": principal.user_id,
                "user_id": user_id,
                "category": category,
                "amount": str(tx.amount),
            },
        )
        return tx

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_wallet(self, user_id: int) -> Wallet:
        """
        Get a user's wallet.

        Raises:
            NotFound: If the user has no wallet
        """
        wallet = await self.wallet_repo.get_by_user_id(user_id)
        if wallet is None:
            raise NotFound("Wallet", user_id=user_id)
        return wallet

    async def check_withdrawal(
        self, user_id: int, amount: Any, now: datetime | None = None
    ) -> WithdrawalEligibility:
        """Withdrawal eligibility with current limits."""
        wallet = await self.get_wallet(user_id)
        return wallet.can_withdraw(amount, now or utc_now())

    async def get_balance_summary(self, user_id: int) -> dict[str, Decimal]:
        """Category balances plus totals."""
        wallet = await self.get_wallet(user_id)
        return {
            **wallet.category_balances(),
            "total_balance": wallet.total_balance,
            "pending_withdrawal": wallet.pending_withdrawal,
            "available_balance": wallet.available_balance,
            "total_withdrawn": wallet.total_withdrawn,
            "total_invested": wallet.total_invested,
            "active_investment": wallet.active_investment,
        }
