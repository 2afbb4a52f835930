"""Transaction domain service."""

import uuid
from typing import Optional
from datetime import date
from decimal import Decimal
from finledger.database.base import Database
from finledger.domain.entities import (
    Account,
    Flow,
    InvestmentLink,
    OperationType,
    Transaction as TransactionEntity,
    TransactionLink,
    TransactionSource,
    TransferLink,
    flow_for_operation,
)
from finledger.domain.errors import (
    DependencyError,
    NotFoundError,
    ValidationError,
    account_not_found,
    category_not_found,
    transaction_not_found,
)
from finledger.logging import get_logger
from finledger.utils.money import quantize_money

logger = get_logger(__name__)


def new_group_id() -> str:
    """Return a fresh identifier pairing the legs of a transfer."""
    return uuid.uuid4().hex


def flow_for_account(account: Account, operation_type: OperationType) -> Flow:
    """Return the flow of a single-leg transaction on an account.

    Credit-card statements only know purchases and credits: an expense is an
    `out`, anything else lowers the amount owed and is an `in`.
    """
    if account.is_credit_card and operation_type != OperationType.TRANSFER:
        return Flow.OUT if operation_type == OperationType.EXPENSE else Flow.IN
    return flow_for_operation(operation_type)


class TransactionService:
    """Service for managing ledger transactions."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def _require_account(self, account_id: int) -> Account:
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def _validate_amount(self, amount: Decimal) -> Decimal:
        amount = quantize_money(amount)
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        return amount

    def create_transaction(
        self,
        account_id: int,
        date: date,
        operation_type: OperationType,
        amount: Decimal,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        link: Optional[TransactionLink] = None,
        flow: Optional[Flow] = None,
        source: TransactionSource = TransactionSource.MANUAL,
        conciliated: bool = False,
        original_description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Create a single-leg transaction.

        Args:
            account_id: Account ID
            date: Transaction date
            operation_type: Business meaning of the transaction
            amount: Positive amount; direction comes from the flow
            description: Optional description
            category_id: Optional category ID
            link: Optional link to a loan, policy or vehicle
            flow: Explicit flow; derived from the operation type when None
            source: Where the transaction came from
            conciliated: Whether it is already matched against a statement
            original_description: Raw bank description, for imported rows
            notes: Optional notes

        Returns:
            Transaction ID

        Raises:
            NotFoundError: If account or category doesn't exist
            ValidationError: If amount is not positive or the operation is a transfer
        """
        account = self._require_account(account_id)
        amount = self._validate_amount(amount)

        if operation_type == OperationType.TRANSFER:
            raise ValidationError("Transfers need two legs; use create_transfer")

        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

        return self.db.create_transaction(
            date=date,
            account_id=account_id,
            flow=flow or flow_for_account(account, operation_type),
            operation_type=operation_type,
            amount=amount,
            description=description,
            category_id=category_id,
            link=link,
            conciliated=conciliated,
            source=source,
            original_description=original_description,
            notes=notes,
        )

    def create_transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        date: date,
        amount: Decimal,
        description: Optional[str] = None,
        source: TransactionSource = TransactionSource.MANUAL,
        conciliated: bool = False,
    ) -> str:
        """Move money between two accounts as a pair of linked legs.

        The destination leg is a plain `in` when the destination is a credit
        card (paying the invoice), `transfer_in` otherwise.

        Returns:
            The transfer group ID shared by both legs

        Raises:
            NotFoundError: If either account doesn't exist
            ValidationError: If accounts are the same or amount is not positive
        """
        if from_account_id == to_account_id:
            raise ValidationError("Source and destination accounts must differ")
        self._require_account(from_account_id)
        destination = self._require_account(to_account_id)
        amount = self._validate_amount(amount)

        group_id = new_group_id()
        link = TransferLink(group_id=group_id)
        description = description or f"Transfer to {destination.name}"

        with self.db.atomic():
            self.db.create_transaction(
                date=date,
                account_id=from_account_id,
                flow=Flow.TRANSFER_OUT,
                operation_type=OperationType.TRANSFER,
                amount=amount,
                description=description,
                link=link,
                conciliated=conciliated,
                source=source,
            )
            self.db.create_transaction(
                date=date,
                account_id=to_account_id,
                flow=Flow.IN if destination.is_credit_card else Flow.TRANSFER_IN,
                operation_type=OperationType.TRANSFER,
                amount=amount,
                description=description,
                link=link,
                source=source,
            )
        logger.info(
            "Transfer %s: %s from account %s to %s", group_id, amount, from_account_id, to_account_id
        )
        return group_id

    def create_investment_move(
        self,
        account_id: int,
        investment_account_id: int,
        date: date,
        amount: Decimal,
        redemption: bool = False,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        source: TransactionSource = TransactionSource.MANUAL,
        conciliated: bool = False,
        original_description: Optional[str] = None,
    ) -> str:
        """Record a contribution to, or redemption from, an investment account.

        A contribution takes money out of `account_id` and into the investment
        account; a redemption does the opposite. Each leg links the other
        account.

        Returns:
            The group ID shared by both legs
        """
        if account_id == investment_account_id:
            raise ValidationError("Investment account must differ from the cash account")
        self._require_account(account_id)
        self._require_account(investment_account_id)
        amount = self._validate_amount(amount)

        operation_type = (
            OperationType.INVESTMENT_REDEMPTION if redemption else OperationType.INVESTMENT_CONTRIBUTION
        )
        cash_flow = Flow.IN if redemption else Flow.OUT
        investment_flow = Flow.OUT if redemption else Flow.IN
        group_id = new_group_id()

        with self.db.atomic():
            self.db.create_transaction(
                date=date,
                account_id=account_id,
                flow=cash_flow,
                operation_type=operation_type,
                amount=amount,
                description=description,
                category_id=category_id,
                link=InvestmentLink(counterpart_account_id=investment_account_id, group_id=group_id),
                conciliated=conciliated,
                source=source,
                original_description=original_description,
            )
            self.db.create_transaction(
                date=date,
                account_id=investment_account_id,
                flow=investment_flow,
                operation_type=operation_type,
                amount=amount,
                description=description,
                category_id=category_id,
                link=InvestmentLink(counterpart_account_id=account_id, group_id=group_id),
                source=source,
            )
        return group_id

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        account_id: Optional[int] = None,
    ) -> list[TransactionEntity]:
        """List transactions ordered by date then ID."""
        return self.db.list_transactions(
            start_date=start_date, end_date=end_date, account_id=account_id
        )

    def set_conciliated(self, transaction_id: int, conciliated: bool = True) -> None:
        """Mark a transaction as matched (or unmatched) against a statement.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        self.db.update_transaction_conciliated(transaction_id, conciliated)

    def group_legs(self, transaction: TransactionEntity) -> list[TransactionEntity]:
        """Return every leg of the transaction's transfer group (itself if unpaired)."""
        if isinstance(transaction.link, (TransferLink, InvestmentLink)):
            legs = self.db.list_transfer_group(transaction.link.group_id)
            if legs:
                return legs
        return [transaction]

    def delete_transaction(self, transaction_id: int) -> int:
        """Delete a transaction together with its paired legs.

        Args:
            transaction_id: Any leg of the transaction

        Returns:
            Number of deleted transactions

        Raises:
            NotFoundError: If transaction doesn't exist
            DependencyError: If a tracked bill is paid by one of the legs
        """
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))

        legs = self.group_legs(transaction)
        leg_ids = {leg.id for leg in legs}
        for bill in self.db.list_bills():
            if bill.transaction_id in leg_ids:
                raise DependencyError(
                    f"Transaction {bill.transaction_id} pays bill {bill.id}; unmark the bill instead"
                )

        with self.db.atomic():
            for leg in legs:
                self.db.delete_transaction(leg.id)
        return len(legs)
