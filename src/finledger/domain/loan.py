"""Loan amortization engine (PRICE / French system) and loan service."""

from datetime import date
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from finledger.database.base import Database
from finledger.domain.entities import (
    BillStatus,
    Loan,
    LoanInstallment,
    LoanLink,
    LoanStatus,
    OperationType,
    ScheduleRow,
    loan_ref,
)
from finledger.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    loan_not_found,
)
from finledger.logging import get_logger
from finledger.utils.money import from_cents, quantize_money, round_half_up, to_cents

logger = get_logger(__name__)


def price_schedule(
    principal: Decimal, installment: Decimal, monthly_rate: Decimal, term: int
) -> list[ScheduleRow]:
    """Compute a PRICE amortization schedule.

    Every step is rounded to the cent. The last installment amortizes
    whatever balance is left, so the schedule always closes at zero.

    Args:
        principal: Amount borrowed
        installment: Fixed monthly payment
        monthly_rate: Monthly interest rate as a percentage (2 means 2%)
        term: Number of monthly installments

    Returns:
        One row per installment, or an empty list when term <= 0 or rate == 0
    """
    rate = Decimal(monthly_rate) / 100
    if term <= 0 or rate == 0:
        return []

    installment_cents = to_cents(installment)
    remaining = to_cents(principal)
    rows = []

    for number in range(1, term + 1):
        if remaining <= 0:
            rows.append(ScheduleRow(number, from_cents(0), from_cents(0), from_cents(0)))
            continue

        interest = round_half_up(Decimal(remaining) * rate)
        if number == term:
            principal_paid = remaining
        else:
            principal_paid = min(installment_cents - interest, remaining)
        remaining -= principal_paid

        rows.append(
            ScheduleRow(
                installment_number=number,
                interest=from_cents(interest),
                principal_paid=from_cents(principal_paid),
                remaining_balance=from_cents(remaining),
            )
        )

    return rows


def price_installment(principal: Decimal, monthly_rate: Decimal, term: int) -> Decimal:
    """Return the fixed PRICE installment for a loan (PMT formula).

    A zero rate spreads the principal evenly over the term.

    Raises:
        ValidationError: If term is not positive
    """
    if term <= 0:
        raise ValidationError("Loan term must be at least one month")

    principal = Decimal(principal)
    rate = Decimal(monthly_rate) / 100
    if rate == 0:
        return quantize_money(principal / term)

    factor = (1 + rate) ** term
    return quantize_money(principal * (rate * factor) / (factor - 1))


def due_date(start_date: date, installment_number: int) -> date:
    """Return the due date of an installment; installment 1 is due on start_date."""
    return start_date + relativedelta(months=installment_number - 1)


class LoanService:
    """Service for loan contracts and their derived schedules."""

    def __init__(self, db: Database):
        """Initialize loan service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_loan(self, loan_id: int) -> Optional[Loan]:
        """Get loan by ID."""
        return self.db.get_loan(loan_id)

    def require_loan(self, loan_id: int) -> Loan:
        """Get loan by ID, raising NotFoundError when it is missing."""
        loan = self.db.get_loan(loan_id)
        if loan is None:
            raise NotFoundError(loan_not_found(loan_id))
        return loan

    def list_loans(self, status: Optional[LoanStatus] = None) -> list[Loan]:
        """List loans, optionally filtered by status."""
        return self.db.list_loans(status=status)

    def create_loan(
        self,
        contract: str,
        principal: Decimal,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        monthly_rate: Optional[Decimal] = None,
        term_months: Optional[int] = None,
        installment: Optional[Decimal] = None,
        disbursement_transaction_id: Optional[int] = None,
    ) -> int:
        """Create a loan.

        The loan is active when rate, term and start date are all known;
        otherwise it waits in pending_configuration until configure_loan.

        Args:
            contract: Contract description
            principal: Amount borrowed
            account_id: Account that received the money
            start_date: Due date of the first installment
            monthly_rate: Monthly rate percentage
            term_months: Number of installments
            installment: Fixed payment; computed with the PMT formula when None
            disbursement_transaction_id: Ledger transaction that released the money

        Returns:
            Loan ID

        Raises:
            ValidationError: If principal is not positive
            NotFoundError: If the account doesn't exist
        """
        principal = quantize_money(principal)
        if principal <= 0:
            raise ValidationError("Loan principal must be positive")
        if account_id is not None and self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))

        configured = monthly_rate is not None and term_months and start_date is not None
        if not configured:
            return self.db.create_loan(
                contract=contract,
                principal=principal,
                start_date=start_date,
                status=LoanStatus.PENDING_CONFIGURATION,
                account_id=account_id,
                disbursement_transaction_id=disbursement_transaction_id,
            )

        self._validate_terms(monthly_rate, term_months)
        if installment is None:
            installment = price_installment(principal, monthly_rate, term_months)
        loan_id = self.db.create_loan(
            contract=contract,
            principal=principal,
            installment=quantize_money(installment),
            monthly_rate=Decimal(monthly_rate),
            term_months=term_months,
            start_date=start_date,
            status=LoanStatus.ACTIVE,
            account_id=account_id,
            disbursement_transaction_id=disbursement_transaction_id,
        )
        logger.info("Created active loan %s (%s)", loan_id, contract)
        return loan_id

    @staticmethod
    def _validate_terms(monthly_rate: Decimal, term_months: int) -> None:
        if Decimal(monthly_rate) < 0:
            raise ValidationError("Monthly rate cannot be negative")
        if term_months <= 0:
            raise ValidationError("Loan term must be at least one month")

    def configure_loan(
        self,
        loan_id: int,
        monthly_rate: Decimal,
        term_months: int,
        start_date: date,
        installment: Optional[Decimal] = None,
    ) -> Loan:
        """Complete the terms of a loan and activate it.

        Raises:
            NotFoundError: If loan not found
            ValidationError: If terms are invalid or the loan is settled
        """
        loan = self.require_loan(loan_id)
        if loan.status == LoanStatus.SETTLED:
            raise ValidationError(f"Loan {loan_id} is already settled")
        self._validate_terms(monthly_rate, term_months)

        if installment is None:
            installment = price_installment(loan.principal, monthly_rate, term_months)

        self.db.update_loan(
            loan_id,
            installment=quantize_money(installment),
            monthly_rate=Decimal(monthly_rate),
            term_months=term_months,
            start_date=start_date,
            status=LoanStatus.ACTIVE,
        )
        logger.info("Configured loan %s: %s%% over %s months", loan_id, monthly_rate, term_months)
        return self.require_loan(loan_id)

    def settle_loan(self, loan_id: int) -> None:
        """Mark a loan as settled; it stops producing projected bills."""
        self.require_loan(loan_id)
        self.db.update_loan(loan_id, status=LoanStatus.SETTLED)

    def schedule(self, loan_id: int) -> list[ScheduleRow]:
        """Return the PRICE schedule of a loan (empty for unknown loans)."""
        loan = self.db.get_loan(loan_id)
        if loan is None:
            return []
        return price_schedule(loan.principal, loan.installment, loan.monthly_rate, loan.term_months)

    def _payments(self, loan_id: int, on_date: Optional[date] = None):
        return self.db.list_transactions(
            end_date=on_date,
            operation_type=OperationType.LOAN_PAYMENT,
            loan_ref=loan_ref(loan_id),
        )

    def installments_paid_as_of(self, loan_id: int, on_date: date) -> int:
        """Count installments paid on or before a date.

        Distinct installment numbers recorded on the payments are counted.
        When no payment records its installment number, the raw number of
        payments is used instead.
        """
        payments = self._payments(loan_id, on_date)
        numbers = {
            p.link.installment_number
            for p in payments
            if isinstance(p.link, LoanLink) and p.link.installment_number is not None
        }
        if numbers:
            return len(numbers)
        return len(payments)

    def paid_installment_numbers(self, loan_id: int) -> set[int]:
        """Return installment numbers that have a ledger payment."""
        return {
            p.link.installment_number
            for p in self._payments(loan_id)
            if isinstance(p.link, LoanLink) and p.link.installment_number is not None
        }

    def outstanding_balance(self, loan_id: int, on_date: date) -> Decimal:
        """Return the scheduled remaining balance after the installments paid so far."""
        loan = self.require_loan(loan_id)
        if loan.status == LoanStatus.SETTLED:
            return Decimal("0.00")
        rows = self.schedule(loan_id)
        paid = min(self.installments_paid_as_of(loan_id, on_date), len(rows))
        if not rows or paid == 0:
            return loan.principal
        return rows[paid - 1].remaining_balance

    def installment_rows(self, loan_id: int, today: date) -> list[LoanInstallment]:
        """Return the schedule with due dates and paid/pending/overdue status."""
        loan = self.require_loan(loan_id)
        if loan.start_date is None:
            return []

        payments = {}
        for payment in self._payments(loan_id):
            number = payment.link.installment_number if isinstance(payment.link, LoanLink) else None
            if number is not None:
                payments[number] = payment

        rows = []
        for row in self.schedule(loan_id):
            due = due_date(loan.start_date, row.installment_number)
            payment = payments.get(row.installment_number)
            if payment is not None:
                status = BillStatus.PAID
            elif due < today:
                status = BillStatus.OVERDUE
            else:
                status = BillStatus.PENDING
            rows.append(
                LoanInstallment(
                    installment_number=row.installment_number,
                    due_date=due,
                    amount=loan.installment,
                    interest=row.interest,
                    principal_paid=row.principal_paid,
                    remaining_balance=row.remaining_balance,
                    status=status,
                    payment_date=payment.date if payment else None,
                    paid_amount=payment.amount if payment else None,
                )
            )
        return rows
