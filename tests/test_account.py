"""Tests for account and category services and commands."""

import pytest
from datetime import date
from decimal import Decimal

from finledger.cli.main import cli
from finledger.domain.entities import AccountType, CategoryNature, OperationType
from finledger.domain.errors import ConflictError, DependencyError, NotFoundError, ValidationError
from finledger.utils.account_resolver import resolve_account


def test_create_account(account_service):
    """Test creating an account with a type and institution."""
    account_id = account_service.create_account(
        "Visa", account_type=AccountType.CREDIT_CARD, institution="Bank A"
    )
    account = account_service.get_account(account_id)
    assert account.name == "Visa"
    assert account.is_credit_card
    assert account.institution == "Bank A"
    assert account.hidden is False


def test_create_account_duplicate_name(account_service, sample_account):
    """Test duplicate account names are rejected."""
    with pytest.raises(ConflictError):
        account_service.create_account("Main Checking")


def test_create_account_blank_name(account_service):
    """Test blank names are rejected."""
    with pytest.raises(ValidationError):
        account_service.create_account("   ")


def test_hidden_accounts_left_out_of_default_list(account_service, sample_account):
    """Test hiding an account keeps it resolvable but out of listings."""
    account_service.set_hidden(sample_account.id)

    assert account_service.list_accounts() == []
    assert [a.id for a in account_service.list_accounts(include_hidden=True)] == [sample_account.id]
    assert resolve_account(account_service, "Main Checking") == sample_account.id


def test_resolve_account_by_id_and_name(account_service, sample_account):
    """Test account resolution accepts IDs, numeric strings and names."""
    assert resolve_account(account_service, sample_account.id) == sample_account.id
    assert resolve_account(account_service, str(sample_account.id)) == sample_account.id
    assert resolve_account(account_service, "Main Checking") == sample_account.id
    with pytest.raises(NotFoundError):
        resolve_account(account_service, "Nope")
    with pytest.raises(NotFoundError):
        resolve_account(account_service, 999)


def test_rename_account(account_service, sample_account):
    """Test renaming an account."""
    account_service.rename_account(sample_account.id, "Checking", institution="Bank B")
    account = account_service.get_account(sample_account.id)
    assert account.name == "Checking"
    assert account.institution == "Bank B"


def test_delete_account_with_transactions_blocked(account_service, transaction_service, sample_account):
    """Test accounts with transactions cannot be deleted."""
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 1), OperationType.RECEIPT, Decimal("10.00")
    )
    with pytest.raises(DependencyError):
        account_service.delete_account(sample_account.id)


def test_delete_empty_account(account_service, sample_account):
    """Test deleting an account without transactions."""
    account_service.delete_account(sample_account.id)
    assert account_service.get_account(sample_account.id) is None


def test_category_paths(category_service, sample_categories):
    """Test nested categories resolve by path."""
    rent = category_service.get_category_by_path("Housing > Rent")
    assert rent.id == sample_categories["rent"]
    assert rent.parent_id == sample_categories["housing"]
    assert category_service.format_category_path(rent.id) == "Housing > Rent"
    assert category_service.get_category_by_path("Rent") is None
    assert category_service.get_category(sample_categories["salary"]).nature == CategoryNature.INCOME


def test_category_missing_parent(category_service):
    """Test creating a category under a missing parent fails."""
    with pytest.raises(NotFoundError):
        category_service.create_category("Child", parent_path="Missing")


def test_account_cli_create_and_list(cli_runner, temp_db):
    """Test creating and listing accounts through the CLI."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "account", "create", "Visa", "--type", "credit_card"],
    )
    assert result.exit_code == 0
    assert "Created account 'Visa'" in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])
    assert result.exit_code == 0
    assert "Visa" in result.output
    assert "credit_card" in result.output


def test_account_cli_duplicate_fails(cli_runner, temp_db, sample_account):
    """Test duplicate account through the CLI exits with an error."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "create", "Main Checking"]
    )
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_account_cli_hide(cli_runner, temp_db, sample_account):
    """Test hiding an account through the CLI."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "hide", "Main Checking"]
    )
    assert result.exit_code == 0

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])
    assert "No accounts found" in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list", "--all"])
    assert "Main Checking" in result.output
    assert "(hidden)" in result.output


def test_category_cli_tree(cli_runner, temp_db, sample_categories):
    """Test category list prints nested categories."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "category", "list"])
    assert result.exit_code == 0
    assert "Housing" in result.output
    assert "  Rent" in result.output

    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "category", "create", "Utilities", "--parent", "Housing"],
    )
    assert result.exit_code == 0
    assert "under 'Housing'" in result.output
