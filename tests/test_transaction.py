"""Tests for ledger transactions: single legs, transfers and investment moves."""

import pytest
from datetime import date
from decimal import Decimal

from finledger.cli.main import cli
from finledger.domain.entities import (
    Flow,
    InvestmentLink,
    OperationType,
    TransferLink,
)
from finledger.domain.errors import NotFoundError, ValidationError


def test_create_expense(transaction_service, sample_account, sample_categories):
    """Test a manual expense is an `out` leg with a quantized amount."""
    txn_id = transaction_service.create_transaction(
        sample_account.id,
        date(2024, 3, 15),
        OperationType.EXPENSE,
        Decimal("89.9"),
        description="Groceries",
        category_id=sample_categories["groceries"],
    )
    txn = transaction_service.get_transaction(txn_id)
    assert txn.flow == Flow.OUT
    assert txn.amount == Decimal("89.90")
    assert txn.category_id == sample_categories["groceries"]
    assert txn.conciliated is False


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
def test_non_positive_amount_rejected(transaction_service, sample_account, amount):
    """Test amounts must be positive; direction comes from the flow."""
    with pytest.raises(ValidationError):
        transaction_service.create_transaction(
            sample_account.id, date(2024, 3, 15), OperationType.EXPENSE, amount
        )


def test_unknown_account_and_category(transaction_service, sample_account):
    """Test references are validated before writing."""
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(999, date(2024, 3, 15), OperationType.EXPENSE, Decimal("1"))
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(
            sample_account.id, date(2024, 3, 15), OperationType.EXPENSE, Decimal("1"), category_id=999
        )


def test_single_leg_transfer_rejected(transaction_service, sample_account):
    """Test transfers must go through create_transfer."""
    with pytest.raises(ValidationError):
        transaction_service.create_transaction(
            sample_account.id, date(2024, 3, 15), OperationType.TRANSFER, Decimal("10")
        )


def test_credit_card_flows(transaction_service, credit_card):
    """Test a card purchase is `out` and a card refund is `in`."""
    purchase = transaction_service.create_transaction(
        credit_card.id, date(2024, 3, 1), OperationType.EXPENSE, Decimal("100")
    )
    refund = transaction_service.create_transaction(
        credit_card.id, date(2024, 3, 2), OperationType.RECEIPT, Decimal("30")
    )
    assert transaction_service.get_transaction(purchase).flow == Flow.OUT
    assert transaction_service.get_transaction(refund).flow == Flow.IN


def test_transfer_creates_paired_legs(transaction_service, sample_account, savings_account):
    """Test a transfer writes two legs sharing a group ID."""
    group_id = transaction_service.create_transfer(
        sample_account.id, savings_account.id, date(2024, 3, 5), Decimal("250.00")
    )
    legs = transaction_service.list_transactions()
    assert len(legs) == 2
    out_leg, in_leg = legs
    assert out_leg.flow == Flow.TRANSFER_OUT
    assert in_leg.flow == Flow.TRANSFER_IN
    assert out_leg.link == TransferLink(group_id=group_id)
    assert in_leg.link == TransferLink(group_id=group_id)


def test_transfer_to_credit_card_is_plain_inflow(transaction_service, sample_account, credit_card):
    """Test paying a card invoice lands as an `in` on the card."""
    transaction_service.create_transfer(
        sample_account.id, credit_card.id, date(2024, 3, 5), Decimal("50")
    )
    card_leg = transaction_service.list_transactions(account_id=credit_card.id)[0]
    assert card_leg.flow == Flow.IN


def test_transfer_to_same_account_rejected(transaction_service, sample_account):
    """Test a transfer needs two different accounts."""
    with pytest.raises(ValidationError):
        transaction_service.create_transfer(
            sample_account.id, sample_account.id, date(2024, 3, 5), Decimal("1")
        )


def test_investment_contribution_and_redemption(transaction_service, sample_account, savings_account):
    """Test investment moves link each leg to the opposite account."""
    transaction_service.create_investment_move(
        sample_account.id, savings_account.id, date(2024, 3, 5), Decimal("1000")
    )
    cash, invested = transaction_service.list_transactions()
    assert (cash.flow, invested.flow) == (Flow.OUT, Flow.IN)
    assert isinstance(cash.link, InvestmentLink)
    assert cash.link.counterpart_account_id == savings_account.id
    assert invested.link.counterpart_account_id == sample_account.id
    assert cash.operation_type == OperationType.INVESTMENT_CONTRIBUTION

    transaction_service.create_investment_move(
        sample_account.id, savings_account.id, date(2024, 3, 6), Decimal("200"), redemption=True
    )
    redemption_legs = transaction_service.list_transactions(start_date=date(2024, 3, 6))
    flows = {t.account_id: t.flow for t in redemption_legs}
    assert flows == {sample_account.id: Flow.IN, savings_account.id: Flow.OUT}


def test_delete_transfer_removes_both_legs(transaction_service, sample_account, savings_account):
    """Test deleting one leg deletes the whole group."""
    transaction_service.create_transfer(
        sample_account.id, savings_account.id, date(2024, 3, 5), Decimal("10")
    )
    first = transaction_service.list_transactions()[0]
    assert transaction_service.delete_transaction(first.id) == 2
    assert transaction_service.list_transactions() == []


def test_set_conciliated(transaction_service, sample_account):
    """Test toggling the conciliation flag."""
    txn_id = transaction_service.create_transaction(
        sample_account.id, date(2024, 3, 1), OperationType.RECEIPT, Decimal("10")
    )
    transaction_service.set_conciliated(txn_id)
    assert transaction_service.get_transaction(txn_id).conciliated is True
    with pytest.raises(NotFoundError):
        transaction_service.set_conciliated(999)


def test_transaction_cli_add_and_list(cli_runner, temp_db, sample_account, sample_categories):
    """Test adding and listing a transaction through the CLI."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "transaction",
            "add",
            "--account",
            "Main Checking",
            "--amount",
            "89,90",
            "--date",
            "15/03/2024",
            "--category",
            "Groceries",
            "--description",
            "Market",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Created transaction" in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "transaction", "list"])
    assert result.exit_code == 0
    assert "2024-03-15" in result.output
    assert "-89.90" in result.output
    assert "Market (Groceries)" in result.output


def test_transaction_cli_unknown_category(cli_runner, temp_db, sample_account):
    """Test an unknown category path fails cleanly."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "transaction",
            "add",
            "--account",
            "Main Checking",
            "--amount",
            "10",
            "--category",
            "Nope",
        ],
    )
    assert result.exit_code == 1
    assert "Category 'Nope' not found" in result.output
