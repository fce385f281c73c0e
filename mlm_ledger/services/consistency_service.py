"""
Consistency service.

Reconciles stored wallet aggregates against their sources of truth:
open payouts for the reservation and completed transactions for the
balance. Mismatches are reported and logged, never auto-corrected.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.config.business_constants import LEDGER_TOLERANCE, ZERO
from mlm_ledger.models.wallet import Wallet
from mlm_ledger.repositories.payout_repository import PayoutRepository
from mlm_ledger.repositories.transaction_repository import TransactionRepository
from mlm_ledger.repositories.wallet_repository import WalletRepository
from mlm_ledger.services.base_service import BaseService, log_operation
from mlm_ledger.utils.exceptions import NotFound


@dataclass
class ReservationCheck:
    """pending_withdrawal versus open payouts."""

    user_id: int
    pending_withdrawal: Decimal
    open_payouts_total: Decimal

    @property
    def ok(self) -> bool:
        return self.pending_withdrawal == self.open_payouts_total


@dataclass
class LedgerCheck:
    """total_balance versus the signed sum of completed transactions."""

    user_id: int
    total_balance: Decimal
    ledger_total: Decimal
    category_differences: dict[str, Decimal] = field(default_factory=dict)

    @property
    def difference(self) -> Decimal:
        return self.total_balance - self.ledger_total

    @property
    def ok(self) -> bool:
        return abs(self.difference) <= LEDGER_TOLERANCE


@dataclass
class ConsistencyReport:
    """Result of a full check over every wallet."""

    checked: int = 0
    reservation_mismatches: list[ReservationCheck] = field(default_factory=list)
    ledger_mismatches: list[LedgerCheck] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.reservation_mismatches and not self.ledger_mismatches

    def to_dict(self) -> dict[str, Any]:
        """Serialize with Decimal values rendered as strings."""

        def _render(item: Any) -> dict[str, Any]:
            return {
                key: str(value) if isinstance(value, Decimal) else value
                for key, value in asdict(item).items()
            }

        return {
            "ok": self.ok,
            "checked": self.checked,
            "reservation_mismatches": [_render(m) for m in self.reservation_mismatches],
            "ledger_mismatches": [_render(m) for m in self.ledger_mismatches],
        }


class ConsistencyService(BaseService):
    """Read-only reconciliation checks."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.wallet_repo = WalletRepository(session)
        self.payout_repo = PayoutRepository(session)
        self.transaction_repo = TransactionRepository(session)

    async def _wallet(self, user_id: int) -> Wallet:
        wallet = await self.wallet_repo.get_by_user_id(user_id)
        if wallet is None:
            raise NotFound("Wallet", user_id=user_id)
        return wallet

    async def check_reservations(self, user_id: int) -> ReservationCheck:
        """Compare pending_withdrawal with pending/approved/processing payouts."""
        wallet = await self._wallet(user_id)
        check = ReservationCheck(
            user_id=user_id,
            pending_withdrawal=wallet.pending_withdrawal,
            open_payouts_total=await self.payout_repo.sum_open_amount(user_id),
        )
        if not check.ok:
            self.logger.error(
                "Reservation mismatch",
                extra={
                    "user_id": user_id,
                    "pending_withdrawal": str(check.pending_withdrawal),
                    "open_payouts_total": str(check.open_payouts_total),
                },
            )
        return check

    async def check_ledger(self, user_id: int) -> LedgerCheck:
        """
        Compare total_balance with the signed sum of completed transactions.

        Credits are also compared per category against the credited
        totals; debits spread proportionally, so category differences are
        informational only.
        """
        wallet = await self._wallet(user_id)
        completed = await self.transaction_repo.get_completed_for_user(user_id)
        ledger_total = sum((tx.balance_effect for tx in completed), ZERO)

        credited = await self.transaction_repo.sum_completed_by_category(user_id)
        category_differences = {
            category: balance - credited.get(category, ZERO)
            for category, balance in wallet.category_balances().items()
            if balance != credited.get(category, ZERO)
        }

        check = LedgerCheck(
            user_id=user_id,
            total_balance=wallet.total_balance,
            ledger_total=ledger_total,
            category_differences=category_differences,
        )
        if not check.ok:
            self.logger.error(
                "Ledger mismatch",
                extra={
                    "user_id": user_id,
                    "total_balance": str(check.total_balance),
                    "ledger_total": str(check.ledger_total),
                    "difference": str(check.difference),
                },
            )
        return check

    @log_operation
    async def run_full_check(self) -> ConsistencyReport:
        """Run both checks for every wallet."""
        report = ConsistencyReport()
        for user_id in await self.wallet_repo.get_all_user_ids():
            report.checked += 1
            reservation = await self.check_reservations(user_id)
            if not reservation.ok:
                report.reservation_mismatches.append(reservation)
            ledger = await self.check_ledger(user_id)
            if not ledger.ok:
                report.ledger_mismatches.append(ledger)

        self.logger.info(
            "Consistency check finished",
            extra={
                "checked": report.checked,
                "reservation_mismatches": len(report.reservation_mismatches),
                "ledger_mismatches": len(report.ledger_mismatches),
            },
        )
        return report
