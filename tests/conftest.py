"""Shared pytest fixtures for finledger tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from finledger.database.factories import create_sqlite_database
from finledger.domain.account import AccountService
from finledger.domain.backup import BackupService
from finledger.domain.balance import BalanceService
from finledger.domain.bills import BillService
from finledger.domain.category import CategoryService
from finledger.domain.entities import AccountType, CategoryNature
from finledger.domain.insurance import InsuranceService
from finledger.domain.loan import LoanService
from finledger.domain.rules import RuleService
from finledger.domain.statement_import import StatementImportService
from finledger.domain.transaction import TransactionService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def balance_service(temp_db):
    """Create a BalanceService with a temporary database."""
    return BalanceService(temp_db)


@pytest.fixture
def loan_service(temp_db):
    """Create a LoanService with a temporary database."""
    return LoanService(temp_db)


@pytest.fixture
def insurance_service(temp_db):
    """Create an InsuranceService with a temporary database."""
    return InsuranceService(temp_db)


@pytest.fixture
def bill_service(temp_db):
    """Create a BillService with a temporary database."""
    return BillService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def import_service(temp_db):
    """Create a StatementImportService with a temporary database."""
    return StatementImportService(temp_db)


@pytest.fixture
def backup_service(temp_db):
    """Create a BackupService with a temporary database."""
    return BackupService(temp_db)


@pytest.fixture
def sample_account(account_service):
    """Create a checking account for testing."""
    account_id = account_service.create_account(
        name="Main Checking", account_type=AccountType.CHECKING, institution="Bank A"
    )
    return account_service.get_account(account_id)


@pytest.fixture
def credit_card(account_service):
    """Create a credit card account for testing."""
    account_id = account_service.create_account(
        name="Visa", account_type=AccountType.CREDIT_CARD, institution="Bank A"
    )
    return account_service.get_account(account_id)


@pytest.fixture
def savings_account(account_service):
    """Create an investment account for testing."""
    account_id = account_service.create_account(
        name="Reserve", account_type=AccountType.EMERGENCY_RESERVE, institution="Broker"
    )
    return account_service.get_account(account_id)


@pytest.fixture
def sample_categories(category_service):
    """Create sample categories for testing."""
    housing_id = category_service.create_category("Housing")
    rent_id = category_service.create_category("Rent", parent_path="Housing")
    groceries_id = category_service.create_category("Groceries")
    salary_id = category_service.create_category("Salary", nature=CategoryNature.INCOME)
    loans_id = category_service.create_category("Loans")
    return {
        "housing": housing_id,
        "rent": rent_id,
        "groceries": groceries_id,
        "salary": salary_id,
        "loans": loans_id,
    }


@pytest.fixture
def sample_loan(loan_service, sample_account):
    """Create the 12,000.00 / 2% / 12 months loan used across tests."""
    loan_id = loan_service.create_loan(
        contract="Car loan",
        principal=Decimal("12000.00"),
        account_id=sample_account.id,
        start_date=date(2024, 1, 10),
        monthly_rate=Decimal("2"),
        term_months=12,
        installment=Decimal("1127.44"),
    )
    return loan_service.get_loan(loan_id)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
