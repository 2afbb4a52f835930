"""Tests for the balance engine."""

import random
import pytest
from datetime import date
from decimal import Decimal

from finledger.cli.main import cli
from finledger.database.factories import create_memory_database
from finledger.domain.account import AccountService
from finledger.domain.balance import BalanceService
from finledger.domain.entities import AccountType, OperationType
from finledger.domain.errors import ValidationError
from finledger.domain.transaction import TransactionService


def test_balance_as_of_dates(balance_service, transaction_service, sample_account):
    """Test balances between, on and before transaction dates."""
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 1), OperationType.RECEIPT, Decimal("5000.00")
    )
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 10), OperationType.EXPENSE, Decimal("1200.00")
    )
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 10), OperationType.EXPENSE, Decimal("300.50")
    )

    assert balance_service.balance_as_of(sample_account.id, date(2024, 2, 29)) == Decimal("0.00")
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 1)) == Decimal("5000.00")
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 9)) == Decimal("5000.00")
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 10)) == Decimal("3499.50")
    assert balance_service.balance_as_of(sample_account.id, date(2025, 1, 1)) == Decimal("3499.50")


def test_unknown_account_balance_is_zero(balance_service):
    """Test an account without transactions has balance zero."""
    assert balance_service.balance_as_of(42, date(2024, 1, 1)) == Decimal("0.00")


def test_cache_sees_new_writes(balance_service, transaction_service, sample_account):
    """Test a cached balance is refreshed after the ledger changes."""
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 1), OperationType.RECEIPT, Decimal("100")
    )
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 31)) == Decimal("100.00")

    txn_id = transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 2), OperationType.EXPENSE, Decimal("40")
    )
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 31)) == Decimal("60.00")

    transaction_service.delete_transaction(txn_id)
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 31)) == Decimal("100.00")


def test_credit_card_balance_is_negative_debt(balance_service, transaction_service, sample_account, credit_card):
    """Test purchases deepen a card balance and payments raise it."""
    transaction_service.create_transaction(
        credit_card.id, date(2024, 3, 1), OperationType.EXPENSE, Decimal("100")
    )
    transaction_service.create_transaction(
        credit_card.id, date(2024, 3, 2), OperationType.RECEIPT, Decimal("30")
    )
    transaction_service.create_transfer(
        sample_account.id, credit_card.id, date(2024, 3, 10), Decimal("50")
    )

    assert balance_service.balance_as_of(credit_card.id, date(2024, 3, 2)) == Decimal("-70.00")
    assert balance_service.balance_as_of(credit_card.id, date(2024, 3, 10)) == Decimal("-20.00")
    assert balance_service.balance_as_of(sample_account.id, date(2024, 3, 10)) == Decimal("-50.00")


def test_transfer_conserves_total(balance_service, transaction_service, sample_account, savings_account):
    """Test a transfer moves money without changing the total."""
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 1), OperationType.RECEIPT, Decimal("1000")
    )
    transaction_service.create_transfer(
        sample_account.id, savings_account.id, date(2024, 3, 2), Decimal("400")
    )
    balances = balance_service.balances_as_of(date(2024, 3, 31))
    assert balances == {sample_account.id: Decimal("600.00"), savings_account.id: Decimal("400.00")}
    assert sum(balances.values()) == Decimal("1000.00")


def test_hidden_accounts_excluded_from_totals(
    balance_service, account_service, transaction_service, sample_account, savings_account
):
    """Test hidden accounts only appear when asked for."""
    account_service.set_hidden(savings_account.id)
    assert set(balance_service.balances_as_of(date(2024, 3, 31))) == {sample_account.id}
    assert set(balance_service.balances_as_of(date(2024, 3, 31), include_hidden=True)) == {
        sample_account.id,
        savings_account.id,
    }


def _ledger_rows():
    rows = []
    for day in range(1, 29):
        rows.append((date(2024, 2, day), OperationType.RECEIPT, Decimal(f"{day * 10}.25")))
        rows.append((date(2024, 2, day), OperationType.EXPENSE, Decimal(f"{day * 3}.10")))
    return rows


def _balances_after_inserting(rows):
    db = create_memory_database()
    db.connect()
    db.initialize_schema()
    try:
        account_id = AccountService(db).create_account("Main", AccountType.CHECKING)
        transactions = TransactionService(db)
        for txn_date, operation, amount in rows:
            transactions.create_transaction(account_id, txn_date, operation, amount)
        balances = BalanceService(db)
        return [balances.balance_as_of(account_id, date(2024, 2, day)) for day in range(1, 30)]
    finally:
        db.disconnect()


def test_balance_independent_of_storage_order():
    """Test the same ledger stored in different orders yields identical balances."""
    rows = _ledger_rows()
    shuffled = list(rows)
    random.Random(7).shuffle(shuffled)

    assert _balances_after_inserting(rows) == _balances_after_inserting(shuffled)
    assert _balances_after_inserting(list(reversed(rows)))[-1] == _balances_after_inserting(rows)[-1]


def test_period_summary(balance_service, transaction_service, sample_account):
    """Test period summaries report opening, movement and closing balances."""
    transaction_service.create_transaction(
        sample_account.id, date(2024, 2, 20), OperationType.RECEIPT, Decimal("500")
    )
    txn_id = transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 5), OperationType.RECEIPT, Decimal("100")
    )
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 6), OperationType.EXPENSE, Decimal("30")
    )
    transaction_service.set_conciliated(txn_id)

    summary = balance_service.period_summary(sample_account.id, date(2024, 3, 1), date(2024, 3, 31))
    assert summary.opening_balance == Decimal("500.00")
    assert summary.total_in == Decimal("100.00")
    assert summary.total_out == Decimal("30.00")
    assert summary.closing_balance == Decimal("570.00")
    assert summary.transaction_count == 2
    assert summary.conciliated_count == 1
    assert not summary.fully_conciliated


def test_period_summary_rejects_inverted_range(balance_service, sample_account):
    """Test start after end is rejected."""
    with pytest.raises(ValidationError):
        balance_service.period_summary(sample_account.id, date(2024, 3, 31), date(2024, 3, 1))


def test_balance_cli(cli_runner, temp_db, transaction_service, sample_account):
    """Test the balance command lists account balances."""
    transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 1), OperationType.RECEIPT, Decimal("1234.5")
    )
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "balance", "--date", "2024-03-31"]
    )
    assert result.exit_code == 0
    assert "Main Checking" in result.output
    assert "1,234.50" in result.output

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "balance", "--date", "2024-02-28", "--account", "Main Checking"]
    )
    assert result.exit_code == 0
    assert "Main Checking: 0.00" in result.output
