"""Duplicate detection strategies for imported statement rows."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from finledger.domain.entities import Account, CandidateTransaction, Transaction
from finledger.domain.transaction import flow_for_account


@dataclass(frozen=True)
class MatchKey:
    """The facts duplicate detection compares."""

    account_id: int
    date: date
    amount: Decimal
    is_inflow: bool


def key_for_transaction(transaction: Transaction) -> MatchKey:
    return MatchKey(
        account_id=transaction.account_id,
        date=transaction.date,
        amount=transaction.amount,
        is_inflow=transaction.flow.is_inflow,
    )


def key_for_candidate(candidate: CandidateTransaction, account: Account) -> MatchKey:
    flow = flow_for_account(account, candidate.operation_type)
    return MatchKey(
        account_id=candidate.account_id,
        date=candidate.date,
        amount=candidate.amount,
        is_inflow=flow.is_inflow,
    )


class DuplicateMatcher(ABC):
    """Decides whether a statement row repeats an existing entry.

    `day_window` bounds how far apart in days two matching entries may be;
    the pipeline only loads ledger entries inside that window.
    """

    day_window = 0

    @abstractmethod
    def is_duplicate(self, candidate: MatchKey, existing: MatchKey) -> bool:
        """Return True when `candidate` likely records the same movement as `existing`."""
        pass


class WindowDuplicateMatcher(DuplicateMatcher):
    """Same account and direction, amounts within a cent, dates within a day window."""

    def __init__(self, amount_tolerance: Decimal = Decimal("0.01"), day_window: int = 1):
        self.amount_tolerance = amount_tolerance
        self.day_window = day_window

    def is_duplicate(self, candidate: MatchKey, existing: MatchKey) -> bool:
        return (
            candidate.account_id == existing.account_id
            and candidate.is_inflow == existing.is_inflow
            and abs(candidate.amount - existing.amount) < self.amount_tolerance
            and abs((candidate.date - existing.date).days) <= self.day_window
        )


class ExactDuplicateMatcher(DuplicateMatcher):
    """Stricter policy: same account, direction, amount and day."""

    def is_duplicate(self, candidate: MatchKey, existing: MatchKey) -> bool:
        return candidate == existing
