"""Tests for the PRICE amortization engine and loan service."""

import pytest
from datetime import date
from decimal import Decimal

from finledger.cli.main import cli
from finledger.domain.entities import BillStatus, LoanLink, LoanStatus, OperationType
from finledger.domain.errors import NotFoundError, ValidationError
from finledger.domain.loan import due_date, price_installment, price_schedule


def test_schedule_first_and_last_rows():
    """Test the reference 12,000.00 at 2% over 12 months."""
    rows = price_schedule(Decimal("12000.00"), Decimal("1127.44"), Decimal("2"), 12)

    assert len(rows) == 12
    first = rows[0]
    assert first.installment_number == 1
    assert first.interest == Decimal("240.00")
    assert first.principal_paid == Decimal("887.44")
    assert first.remaining_balance == Decimal("11112.56")
    assert rows[-1].remaining_balance == Decimal("0.00")


@pytest.mark.parametrize(
    "principal, rate, term",
    [
        (Decimal("12000.00"), Decimal("2"), 12),
        (Decimal("35000.00"), Decimal("1.49"), 48),
        (Decimal("999.99"), Decimal("7.5"), 5),
        (Decimal("250000.00"), Decimal("0.85"), 360),
    ],
)
def test_schedule_conserves_principal_and_is_monotonic(principal, rate, term):
    """Test amortized principal sums to the loan and the balance never rises."""
    installment = price_installment(principal, rate, term)
    rows = price_schedule(principal, installment, rate, term)

    assert sum(r.principal_paid for r in rows) == principal
    assert rows[-1].remaining_balance == Decimal("0.00")
    balances = [principal] + [r.remaining_balance for r in rows]
    assert all(later <= earlier for earlier, later in zip(balances, balances[1:]))
    assert all(r.interest >= 0 for r in rows)


def test_schedule_degenerate_inputs():
    """Test zero term or zero rate yields no schedule."""
    assert price_schedule(Decimal("1000"), Decimal("100"), Decimal("2"), 0) == []
    assert price_schedule(Decimal("1000"), Decimal("100"), Decimal("0"), 10) == []


def test_overpaying_installment_pads_with_zero_rows():
    """Test rows after the balance reaches zero are all zero."""
    rows = price_schedule(Decimal("1000.00"), Decimal("600.00"), Decimal("1"), 4)
    assert rows[1].remaining_balance == Decimal("0.00")
    assert rows[2].interest == Decimal("0.00")
    assert rows[3].principal_paid == Decimal("0.00")
    assert sum(r.principal_paid for r in rows) == Decimal("1000.00")


def test_price_installment():
    """Test the PMT formula and the zero-rate split."""
    assert price_installment(Decimal("12000"), Decimal("2"), 12) == Decimal("1134.72")
    assert price_installment(Decimal("1200"), Decimal("0"), 12) == Decimal("100.00")
    with pytest.raises(ValidationError):
        price_installment(Decimal("1200"), Decimal("1"), 0)


def test_due_date_is_monthly_from_start():
    """Test installment 1 is due on the start date."""
    assert due_date(date(2024, 1, 31), 1) == date(2024, 1, 31)
    assert due_date(date(2024, 1, 31), 2) == date(2024, 2, 29)
    assert due_date(date(2024, 1, 10), 13) == date(2025, 1, 10)


def test_create_loan_pending_until_configured(loan_service, sample_account):
    """Test a loan without terms waits for configuration."""
    loan_id = loan_service.create_loan("Bank loan", Decimal("5000"), account_id=sample_account.id)
    loan = loan_service.get_loan(loan_id)
    assert loan.status == LoanStatus.PENDING_CONFIGURATION
    assert loan_service.schedule(loan_id) == []

    loan = loan_service.configure_loan(loan_id, Decimal("2"), 12, date(2024, 2, 1))
    assert loan.status == LoanStatus.ACTIVE
    assert loan.installment == price_installment(Decimal("5000"), Decimal("2"), 12)
    assert len(loan_service.schedule(loan_id)) == 12


def test_create_loan_validation(loan_service):
    """Test invalid loans are rejected."""
    with pytest.raises(ValidationError):
        loan_service.create_loan("Bad", Decimal("0"))
    with pytest.raises(NotFoundError):
        loan_service.create_loan("Bad", Decimal("10"), account_id=999)
    with pytest.raises(ValidationError):
        loan_service.create_loan(
            "Bad", Decimal("10"), start_date=date(2024, 1, 1), monthly_rate=Decimal("-1"), term_months=3
        )


def test_unknown_loan_schedule_is_empty(loan_service):
    """Test schedules of unknown loans degrade to empty."""
    assert loan_service.schedule(999) == []


def _pay(transaction_service, account_id, loan, number, on):
    return transaction_service.create_transaction(
        account_id,
        on,
        OperationType.LOAN_PAYMENT,
        loan.installment,
        link=LoanLink(loan_ref=loan.ref, installment_number=number),
    )


def test_installments_paid_and_outstanding(loan_service, transaction_service, sample_account, sample_loan):
    """Test paid installment counting and the outstanding balance."""
    _pay(transaction_service, sample_account.id, sample_loan, 1, date(2024, 1, 10))
    _pay(transaction_service, sample_account.id, sample_loan, 2, date(2024, 2, 10))

    assert loan_service.installments_paid_as_of(sample_loan.id, date(2024, 1, 31)) == 1
    assert loan_service.installments_paid_as_of(sample_loan.id, date(2024, 3, 1)) == 2
    assert loan_service.paid_installment_numbers(sample_loan.id) == {1, 2}

    rows = loan_service.schedule(sample_loan.id)
    assert loan_service.outstanding_balance(sample_loan.id, date(2024, 3, 1)) == rows[1].remaining_balance
    assert loan_service.outstanding_balance(sample_loan.id, date(2023, 12, 31)) == Decimal("12000.00")


def test_installments_paid_falls_back_to_payment_count(loan_service, transaction_service, sample_account, sample_loan):
    """Test payments without installment numbers are counted one by one."""
    for day in (10, 11, 12):
        transaction_service.create_transaction(
            sample_account.id,
            date(2024, 1, day),
            OperationType.LOAN_PAYMENT,
            Decimal("1127.44"),
            link=LoanLink(loan_ref=sample_loan.ref),
        )
    assert loan_service.installments_paid_as_of(sample_loan.id, date(2024, 1, 31)) == 3


def test_installment_rows_status(loan_service, transaction_service, sample_account, sample_loan):
    """Test schedule rows carry due dates and paid/overdue/pending status."""
    _pay(transaction_service, sample_account.id, sample_loan, 1, date(2024, 1, 9))

    rows = loan_service.installment_rows(sample_loan.id, today=date(2024, 2, 20))
    assert rows[0].status == BillStatus.PAID
    assert rows[0].payment_date == date(2024, 1, 9)
    assert rows[1].due_date == date(2024, 2, 10)
    assert rows[1].status == BillStatus.OVERDUE
    assert rows[2].status == BillStatus.PENDING


def test_settled_loan_has_no_outstanding_balance(loan_service, sample_loan):
    """Test settling a loan."""
    loan_service.settle_loan(sample_loan.id)
    assert loan_service.get_loan(sample_loan.id).status == LoanStatus.SETTLED
    assert loan_service.outstanding_balance(sample_loan.id, date(2024, 6, 1)) == Decimal("0.00")


def test_loan_cli_create_and_schedule(cli_runner, temp_db, sample_account):
    """Test creating a loan and printing its schedule."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "loan",
            "create",
            "Car loan",
            "--principal",
            "12000",
            "--rate",
            "2",
            "--term",
            "12",
            "--start",
            "2024-01-10",
            "--installment",
            "1127.44",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Created loan 'Car loan' (ID: 1, active)" in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "loan", "schedule", "1"])
    assert result.exit_code == 0
    assert "240.00" in result.output
    assert "887.44" in result.output
    assert "11,112.56" in result.output


def test_loan_cli_configure(cli_runner, temp_db):
    """Test configuring a pending loan through the CLI."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "loan", "create", "Bank", "--principal", "1200"]
    )
    assert "pending_configuration" in result.output

    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "loan", "configure", "1", "--rate", "0", "--term", "12", "--start", "2024-01-01"],
    )
    assert result.exit_code == 0, result.output
    assert "100.00 x 12" in result.output


def test_loan_cli_unknown_loan(cli_runner, temp_db):
    """Test an unknown loan exits with an error."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "loan", "schedule", "9"])
    assert result.exit_code == 1
    assert "Loan 9 not found" in result.output
