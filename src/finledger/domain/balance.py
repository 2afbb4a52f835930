"""Balance engine: point-in-time account balances derived from the ledger."""

from bisect import bisect_right
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from finledger.database.base import Database
from finledger.domain.entities import PeriodSummary, Transaction
from finledger.domain.errors import ValidationError
from finledger.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0.00")


def signed_amount(transaction: Transaction) -> Decimal:
    """Return the amount with the sign its flow gives it on its account.

    Credit cards use the same arithmetic: their balance is the negated amount
    owed, so a purchase (`out`) deepens it and a payment (`in`) raises it.
    """
    return transaction.amount if transaction.flow.is_inflow else -transaction.amount


class BalanceService:
    """Answers balance-as-of queries from a cache keyed by (account, date).

    The cache is rebuilt in full whenever the database version differs from
    the version it was built against, so a read never sees a stale ledger.
    """

    def __init__(self, db: Database):
        """Initialize balance service.

        Args:
            db: Database instance
        """
        self.db = db
        self._version: Optional[int] = None
        self._balances: dict[tuple[int, date], Decimal] = {}
        self._dates: dict[int, list[date]] = {}

    def _ensure_fresh(self) -> None:
        if self._version == self.db.version:
            return
        self._rebuild()

    def _rebuild(self) -> None:
        transactions = sorted(self.db.list_transactions(), key=lambda t: (t.date, t.id))

        running: dict[int, Decimal] = {}
        balances: dict[tuple[int, date], Decimal] = {}
        dates: dict[int, list[date]] = {}

        for txn in transactions:
            total = running.get(txn.account_id, ZERO) + signed_amount(txn)
            running[txn.account_id] = total
            key = (txn.account_id, txn.date)
            if key not in balances:
                dates.setdefault(txn.account_id, []).append(txn.date)
            # Last write per day wins
            balances[key] = total

        self._balances = balances
        self._dates = dates
        self._version = self.db.version
        logger.debug(
            "Rebuilt balance cache at version %s from %d transactions",
            self._version,
            len(transactions),
        )

    def balance_as_of(self, account_id: int, on_date: date) -> Decimal:
        """Return the balance of an account at the end of a day.

        Args:
            account_id: Account ID; unknown accounts have balance 0
            on_date: Day to evaluate

        Returns:
            Signed balance (negative for money owed on a credit card)
        """
        self._ensure_fresh()

        exact = self._balances.get((account_id, on_date))
        if exact is not None:
            return exact

        dates = self._dates.get(account_id)
        if not dates:
            return ZERO

        index = bisect_right(dates, on_date)
        if index == 0:
            return ZERO
        return self._balances[(account_id, dates[index - 1])]

    def balances_as_of(self, on_date: date, include_hidden: bool = False) -> dict[int, Decimal]:
        """Return the balance of every account as of a day, keyed by account ID."""
        return {
            account.id: self.balance_as_of(account.id, on_date)
            for account in self.db.list_accounts()
            if include_hidden or not account.hidden
        }

    def period_summary(self, account_id: int, start_date: date, end_date: date) -> PeriodSummary:
        """Summarize an account's movement between two dates (inclusive).

        Raises:
            ValidationError: If start_date is after end_date
        """
        if start_date > end_date:
            raise ValidationError("Start date must be on or before end date")

        transactions = self.db.list_transactions(
            start_date=start_date, end_date=end_date, account_id=account_id
        )
        total_in = sum((t.amount for t in transactions if t.flow.is_inflow), ZERO)
        total_out = sum((t.amount for t in transactions if not t.flow.is_inflow), ZERO)

        return PeriodSummary(
            account_id=account_id,
            start_date=start_date,
            end_date=end_date,
            opening_balance=self.balance_as_of(account_id, start_date - timedelta(days=1)),
            total_in=total_in,
            total_out=total_out,
            closing_balance=self.balance_as_of(account_id, end_date),
            transaction_count=len(transactions),
            conciliated_count=sum(1 for t in transactions if t.conciliated),
        )
