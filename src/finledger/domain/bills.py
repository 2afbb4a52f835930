"""Obligation projector: tracked bills, projected installments and payments."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from finledger.database.base import Database
from finledger.domain.entities import (
    AccountType,
    Bill,
    BillDisplayItem,
    BillSourceType,
    BillStatus,
    Flow,
    InsuranceLink,
    LoanLink,
    LoanStatus,
    MonthTotals,
    OperationType,
    PotentialBill,
    SCHEDULED_SOURCES,
    Transaction,
    TransactionSource,
    loan_ref,
)
from finledger.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    bill_not_found,
    category_not_found,
    installment_already_tracked,
)
from finledger.domain.loan import LoanService, due_date
from finledger.logging import get_logger
from finledger.utils.date_parser import month_bounds
from finledger.utils.money import from_cents, quantize_money, to_cents

logger = get_logger(__name__)

EXTERNAL_EXPENSE_OPERATIONS = frozenset({OperationType.EXPENSE, OperationType.LOAN_PAYMENT})

# Category name fragments suggested for newly tracked installments
_CATEGORY_HINTS = {
    BillSourceType.LOAN_INSTALLMENT: ("loan", "emprestimo", "empréstimo"),
    BillSourceType.INSURANCE_INSTALLMENT: ("insurance", "seguro"),
}


def bill_status(bill: Bill, today: date) -> BillStatus:
    """Derive the display status of a tracked bill."""
    if bill.is_paid:
        return BillStatus.PAID
    if bill.due_date < today:
        return BillStatus.OVERDUE
    return BillStatus.PENDING


class BillService:
    """Service projecting and tracking monthly obligations."""

    def __init__(self, db: Database):
        """Initialize bill service.

        Args:
            db: Database instance
        """
        self.db = db
        self.loans = LoanService(db)

    # Queries

    def get_bill(self, bill_id: int) -> Optional[Bill]:
        """Get bill by ID."""
        return self.db.get_bill(bill_id)

    def require_bill(self, bill_id: int) -> Bill:
        """Get bill by ID, raising NotFoundError when it is missing."""
        bill = self.db.get_bill(bill_id)
        if bill is None:
            raise NotFoundError(bill_not_found(bill_id))
        return bill

    def bills_for_month(self, month: date) -> list[Bill]:
        """Return tracked bills due or paid in the month.

        Excluded bills are hidden unless they were paid.

        Args:
            month: Any day of the target month

        Returns:
            Bills ordered by due date then ID
        """
        start_date, end_date = month_bounds(month)
        result = []
        for bill in self.db.list_bills():
            due_in_month = start_date <= bill.due_date <= end_date
            paid_in_month = bill.payment_date is not None and start_date <= bill.payment_date <= end_date
            if not (due_in_month or paid_in_month):
                continue
            if bill.is_excluded and not bill.is_paid:
                continue
            result.append(bill)
        return sorted(result, key=lambda b: (b.due_date, b.id))

    def external_paid_expenses(self, month: date) -> list[Transaction]:
        """Return paid ledger expenses of the month that no bill accounts for."""
        start_date, end_date = month_bounds(month)
        linked = {b.transaction_id for b in self.db.list_bills() if b.transaction_id is not None}
        return [
            txn
            for txn in self.db.list_transactions(start_date=start_date, end_date=end_date)
            if txn.flow == Flow.OUT
            and txn.operation_type in EXTERNAL_EXPENSE_OPERATIONS
            and txn.id not in linked
        ]

    def display_items(self, month: date, today: Optional[date] = None) -> list[BillDisplayItem]:
        """Return the monthly bills view: tracked bills plus untracked paid expenses."""
        today = today or date.today()
        items = [
            BillDisplayItem(
                description=bill.description,
                due_date=bill.due_date,
                amount=bill.expected_amount,
                status=bill_status(bill, today),
                source_type=bill.source_type,
                is_external=False,
                bill_id=bill.id,
                transaction_id=bill.transaction_id,
                suggested_account_id=bill.suggested_account_id,
            )
            for bill in self.bills_for_month(month)
        ]
        items.extend(
            BillDisplayItem(
                description=txn.description or txn.original_description or "",
                due_date=txn.date,
                amount=txn.amount,
                status=BillStatus.PAID,
                source_type=None,
                is_external=True,
                transaction_id=txn.id,
            )
            for txn in self.external_paid_expenses(month)
        )
        return sorted(
            items,
            key=lambda i: (i.due_date, i.is_external, i.bill_id or 0, i.transaction_id or 0),
        )

    def month_totals(self, month: date) -> MonthTotals:
        """Sum paid and pending obligations of a month.

        Bills suggested to a credit card count as pending even when paid,
        because the card invoice itself still has to be paid.
        """
        card_ids = {
            acc.id for acc in self.db.list_accounts() if acc.account_type == AccountType.CREDIT_CARD
        }
        paid = Decimal("0.00")
        pending = Decimal("0.00")
        for item in self.display_items(month):
            if item.status == BillStatus.PAID and item.suggested_account_id not in card_ids:
                paid += item.amount
            else:
                pending += item.amount
        return MonthTotals(paid=paid, pending=pending)

    def _tracked_keys(self) -> set:
        return {b.source_key for b in self.db.list_bills() if not b.is_excluded}

    def _all_potential_bills(self) -> list[PotentialBill]:
        tracked = self._tracked_keys()
        potentials = []

        for loan in self.db.list_loans(status=LoanStatus.ACTIVE):
            if loan.start_date is None:
                continue
            paid_numbers = self.loans.paid_installment_numbers(loan.id)
            for row in self.loans.schedule(loan.id):
                number = row.installment_number
                key = (BillSourceType.LOAN_INSTALLMENT, str(loan.id), number)
                potentials.append(
                    PotentialBill(
                        source_type=BillSourceType.LOAN_INSTALLMENT,
                        source_ref=str(loan.id),
                        installment_number=number,
                        description=f"{loan.contract} - P{number}/{loan.term_months}",
                        due_date=due_date(loan.start_date, number),
                        expected_amount=loan.installment,
                        is_paid=number in paid_numbers,
                        is_included=key in tracked,
                    )
                )

        for policy in self.db.list_insurance_policies():
            count = len(policy.installments)
            for inst in policy.installments:
                key = (BillSourceType.INSURANCE_INSTALLMENT, str(policy.id), inst.number)
                potentials.append(
                    PotentialBill(
                        source_type=BillSourceType.INSURANCE_INSTALLMENT,
                        source_ref=str(policy.id),
                        installment_number=inst.number,
                        description=f"{policy.description} - P{inst.number}/{count}",
                        due_date=inst.due_date,
                        expected_amount=inst.amount,
                        is_paid=inst.paid,
                        is_included=key in tracked,
                    )
                )

        return potentials

    def find_potential_bill(
        self, source_type: BillSourceType, source_ref: str, installment_number: int
    ) -> PotentialBill:
        """Look up one projected loan or insurance installment.

        Raises:
            NotFoundError: If no active loan or policy projects that installment
        """
        key = (source_type, str(source_ref), installment_number)
        for potential in self._all_potential_bills():
            if potential.source_key == key:
                return potential
        raise NotFoundError(
            f"No projected installment {installment_number} for {source_type.value} '{source_ref}'"
        )

    def potential_fixed_bills(self, month: date) -> list[PotentialBill]:
        """Return loan and insurance installments due in the month."""
        start_date, end_date = month_bounds(month)
        return sorted(
            (p for p in self._all_potential_bills() if start_date <= p.due_date <= end_date),
            key=lambda p: (p.due_date, p.source_type.value, p.source_ref, p.installment_number),
        )

    def future_fixed_bills(self, month: date) -> list[PotentialBill]:
        """Return unpaid installments due after the month, for paying ahead."""
        _, end_date = month_bounds(month)
        return sorted(
            (p for p in self._all_potential_bills() if p.due_date > end_date and not p.is_paid),
            key=lambda p: (p.due_date, p.source_type.value, p.source_ref, p.installment_number),
        )

    # Mutations

    def add_bill(
        self,
        description: str,
        due_date: date,
        expected_amount: Decimal,
        source_type: BillSourceType = BillSourceType.AD_HOC,
        suggested_account_id: Optional[int] = None,
        suggested_category_id: Optional[int] = None,
    ) -> int:
        """Track a one-off or recurring expense bill.

        Raises:
            ValidationError: If the description is blank, the amount is not
                positive, or the source type needs a loan/insurance reference
            NotFoundError: If the suggested account or category doesn't exist
        """
        if not description.strip():
            raise ValidationError("Bill description cannot be empty")
        expected_amount = quantize_money(expected_amount)
        if expected_amount <= 0:
            raise ValidationError("Bill amount must be positive")
        if source_type in SCHEDULED_SOURCES:
            raise ValidationError("Loan and insurance bills are tracked through toggle_fixed_bill")
        self._validate_suggestions(suggested_account_id, suggested_category_id)

        return self.db.create_bill(
            description=description.strip(),
            due_date=due_date,
            expected_amount=expected_amount,
            source_type=source_type,
            suggested_account_id=suggested_account_id,
            suggested_category_id=suggested_category_id,
        )

    def add_purchase_installments(
        self,
        description: str,
        total_amount: Decimal,
        installments: int,
        first_due_date: date,
        suggested_account_id: Optional[int] = None,
        suggested_category_id: Optional[int] = None,
    ) -> list[int]:
        """Split a purchase into monthly purchase_installment bills.

        The last installment absorbs the rounding remainder so the bills add
        up to the total exactly.

        Returns:
            IDs of the created bills, in installment order
        """
        if not description.strip():
            raise ValidationError("Purchase description cannot be empty")
        total_cents = to_cents(total_amount)
        if total_cents <= 0:
            raise ValidationError("Purchase amount must be positive")
        if installments <= 0:
            raise ValidationError("Installment count must be positive")
        self._validate_suggestions(suggested_account_id, suggested_category_id)

        base = total_cents // installments
        purchase_ref = uuid.uuid4().hex
        bill_ids = []
        with self.db.atomic():
            for number in range(1, installments + 1):
                cents = base if number < installments else total_cents - base * (installments - 1)
                bill_ids.append(
                    self.db.create_bill(
                        description=f"{description.strip()} ({number}/{installments})",
                        due_date=due_date(first_due_date, number),
                        expected_amount=from_cents(cents),
                        source_type=BillSourceType.PURCHASE_INSTALLMENT,
                        source_ref=purchase_ref,
                        installment_number=number,
                        suggested_account_id=suggested_account_id,
                        suggested_category_id=suggested_category_id,
                    )
                )
        return bill_ids

    def _validate_suggestions(
        self, account_id: Optional[int], category_id: Optional[int]
    ) -> None:
        if account_id is not None and self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

    def _suggested_account_id(self) -> Optional[int]:
        for account in self.db.list_accounts():
            if account.account_type == AccountType.CHECKING and not account.hidden:
                return account.id
        return None

    def _suggested_category_id(self, source_type: BillSourceType) -> Optional[int]:
        hints = _CATEGORY_HINTS.get(source_type, ())
        for category in self.db.list_categories():
            name = category.name.lower()
            if any(hint in name for hint in hints):
                return category.id
        return None

    def _check_not_paid_elsewhere(self, bill: Union[Bill, PotentialBill]) -> None:
        """Reject paying a scheduled installment the ledger already settled."""
        if bill.source_type == BillSourceType.LOAN_INSTALLMENT and bill.source_ref:
            if bill.installment_number in self.loans.paid_installment_numbers(int(bill.source_ref)):
                raise ConflictError(
                    f"Installment {bill.installment_number} of loan {bill.source_ref} is already paid"
                )
        if bill.source_type == BillSourceType.INSURANCE_INSTALLMENT and bill.source_ref:
            policy = self.db.get_insurance_policy(int(bill.source_ref))
            if policy is None:
                raise NotFoundError(f"Insurance policy {bill.source_ref} not found")
            inst = next((i for i in policy.installments if i.number == bill.installment_number), None)
            if inst is None:
                raise NotFoundError(
                    f"Installment {bill.installment_number} of insurance policy {policy.id} not found"
                )
            if inst.paid:
                raise ConflictError(
                    f"Installment {inst.number} of insurance policy {policy.id} is already paid"
                )

    def _resolve_payment_account(self, bill: Bill, account_id: Optional[int]) -> int:
        account_id = account_id if account_id is not None else bill.suggested_account_id
        if account_id is None:
            raise ValidationError(f"Bill {bill.id} has no account to pay it from")
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        return account_id

    def _payment_description(self, bill: Bill) -> str:
        if bill.source_type == BillSourceType.LOAN_INSTALLMENT and bill.source_ref:
            loan = self.db.get_loan(int(bill.source_ref))
            contract = loan.contract if loan else "N/A"
            term = loan.term_months if loan else "N/A"
            return f"Loan payment {contract} - P{bill.installment_number}/{term}"
        return bill.description

    def _write_payment(self, bill: Bill, account_id: int, payment_date: date) -> int:
        """Create the paying transaction and flag the bill; callers validate first."""
        link = None
        operation_type = OperationType.EXPENSE
        if bill.source_type == BillSourceType.LOAN_INSTALLMENT and bill.source_ref:
            operation_type = OperationType.LOAN_PAYMENT
            link = LoanLink(loan_ref=loan_ref(int(bill.source_ref)), installment_number=bill.installment_number)
        elif bill.source_type == BillSourceType.INSURANCE_INSTALLMENT and bill.source_ref:
            link = InsuranceLink(policy_id=int(bill.source_ref), installment_number=bill.installment_number)

        category_id = bill.suggested_category_id
        if category_id is not None and self.db.get_category(category_id) is None:
            category_id = None

        transaction_id = self.db.create_transaction(
            date=payment_date,
            account_id=account_id,
            flow=Flow.OUT,
            operation_type=operation_type,
            amount=bill.expected_amount,
            description=self._payment_description(bill),
            category_id=category_id,
            link=link,
            source=TransactionSource.BILL_TRACKER,
            notes=f"Created by bill tracker for bill {bill.id}",
        )
        if isinstance(link, InsuranceLink):
            self.db.set_insurance_installment_paid(
                link.policy_id, link.installment_number, True, transaction_id
            )
        self.db.update_bill_payment(bill.id, True, payment_date, transaction_id)
        return transaction_id

    def mark_paid(
        self,
        bill_id: int,
        payment_date: Optional[date] = None,
        account_id: Optional[int] = None,
    ) -> int:
        """Pay a bill by creating exactly one ledger transaction.

        Args:
            bill_id: Bill to pay
            payment_date: Payment date (defaults to today)
            account_id: Account paying the bill (defaults to the suggested one)

        Returns:
            ID of the created transaction

        Raises:
            NotFoundError: If the bill or account doesn't exist
            ConflictError: If the bill or its installment is already paid
            ValidationError: If no paying account is known
        """
        bill = self.require_bill(bill_id)
        if bill.is_paid:
            raise ConflictError(f"Bill {bill_id} is already paid")
        account_id = self._resolve_payment_account(bill, account_id)
        self._check_not_paid_elsewhere(bill)

        payment_date = payment_date or date.today()
        with self.db.atomic():
            transaction_id = self._write_payment(bill, account_id, payment_date)
        logger.info("Marked bill %s paid with transaction %s", bill_id, transaction_id)
        return transaction_id

    def _write_unpayment(self, bill: Bill) -> None:
        if bill.transaction_id is not None and self.db.get_transaction(bill.transaction_id) is not None:
            self.db.delete_transaction(bill.transaction_id)
        if bill.source_type == BillSourceType.INSURANCE_INSTALLMENT and bill.source_ref:
            policy = self.db.get_insurance_policy(int(bill.source_ref))
            if policy is not None and any(i.number == bill.installment_number for i in policy.installments):
                self.db.set_insurance_installment_paid(
                    policy.id, bill.installment_number, False, None
                )
        self.db.update_bill_payment(bill.id, False, None, None)

    def unmark_paid(self, bill_id: int) -> None:
        """Undo mark_paid: delete the paying transaction and clear the paid state.

        Raises:
            NotFoundError: If the bill doesn't exist
            ValidationError: If the bill is not paid
        """
        bill = self.require_bill(bill_id)
        if not bill.is_paid:
            raise ValidationError(f"Bill {bill_id} is not paid")

        with self.db.atomic():
            self._write_unpayment(bill)
        logger.info("Unmarked bill %s (deleted transaction %s)", bill_id, bill.transaction_id)

    def toggle_fixed_bill(
        self,
        potential: PotentialBill,
        include: bool,
        today: Optional[date] = None,
    ) -> Optional[int]:
        """Opt a projected installment in or out of tracking.

        Turning it on creates a pending bill; when the installment is already
        past due and unpaid it is also paid at once, in the same commit.
        Turning it off deletes the bill together with any paying transaction.

        Returns:
            ID of the created bill when including, None when excluding

        Raises:
            ConflictError: If including an installment that is already tracked
            NotFoundError: If excluding an installment that is not tracked
            ValidationError: If an immediate payment has no account to use
        """
        today = today or date.today()
        if include:
            return self._include_fixed_bill(potential, today)
        self._remove_fixed_bill(potential)
        return None

    def _include_fixed_bill(self, potential: PotentialBill, today: date) -> int:
        if potential.source_key in self._tracked_keys():
            raise ConflictError(
                installment_already_tracked(potential.source_ref, potential.installment_number)
            )

        account_id = self._suggested_account_id()
        pay_now = potential.due_date < today and not potential.is_paid
        if pay_now and account_id is None:
            raise ValidationError(
                "A past-due installment needs a checking account to record its payment"
            )
        if pay_now:
            self._check_not_paid_elsewhere(potential)

        with self.db.atomic():
            bill_id = self.db.create_bill(
                description=potential.description,
                due_date=potential.due_date,
                expected_amount=potential.expected_amount,
                source_type=potential.source_type,
                source_ref=potential.source_ref,
                installment_number=potential.installment_number,
                suggested_account_id=account_id,
                suggested_category_id=self._suggested_category_id(potential.source_type),
            )
            if pay_now:
                bill = self.require_bill(bill_id)
                self._write_payment(bill, account_id, today)
        logger.info(
            "Tracking %s %s/%s as bill %s%s",
            potential.source_type.value,
            potential.source_ref,
            potential.installment_number,
            bill_id,
            " (paid)" if pay_now else "",
        )
        return bill_id

    def _remove_fixed_bill(self, potential: PotentialBill) -> None:
        bills = [b for b in self.db.list_bills() if b.source_key == potential.source_key]
        if not bills:
            raise NotFoundError(
                f"Installment {potential.installment_number} of '{potential.source_ref}' is not tracked"
            )
        with self.db.atomic():
            for bill in bills:
                if bill.is_paid:
                    self._write_unpayment(bill)
                self.db.delete_bill(bill.id)

    def exclude_bill(self, bill_id: int, excluded: bool = True) -> None:
        """Soft-exclude (or restore) a bill.

        Raises:
            ValidationError: If the bill is paid
            ConflictError: If restoring would double-track an installment
        """
        bill = self.require_bill(bill_id)
        if bill.is_paid:
            raise ValidationError(f"Bill {bill_id} is paid and cannot be excluded")
        if not excluded and bill.is_excluded and bill.source_type in SCHEDULED_SOURCES:
            if bill.source_key in self._tracked_keys():
                raise ConflictError(installment_already_tracked(bill.source_ref, bill.installment_number))
        self.db.update_bill_excluded(bill_id, excluded)

    def delete_bill(self, bill_id: int) -> None:
        """Delete an unpaid bill.

        Raises:
            ValidationError: If the bill is paid
        """
        bill = self.require_bill(bill_id)
        if bill.is_paid:
            raise ValidationError(f"Bill {bill_id} is paid; unmark it before deleting")
        self.db.delete_bill(bill_id)
