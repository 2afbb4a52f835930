"""Transaction management commands."""

import click
from finledger.cli.account_resolution import resolve_account_or_exit, resolve_category_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.cli.parsing import format_money, parse_cli_amount, parse_cli_date
from finledger.domain.account import AccountService
from finledger.domain.category import CategoryService
from finledger.domain.entities import OperationType
from finledger.domain.errors import DomainError
from finledger.domain.transaction import TransactionService

# Operations recorded as a single leg from the command line
SINGLE_LEG_OPERATIONS = [
    op.value
    for op in OperationType
    if op
    not in (
        OperationType.TRANSFER,
        OperationType.INVESTMENT_CONTRIBUTION,
        OperationType.INVESTMENT_REDEMPTION,
    )
]


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


@transaction_group.command("add")
@click.option("--account", required=True, help="Account name or ID")
@click.option("--amount", required=True, help="Transaction amount (e.g., 123.45)")
@click.option("--date", "txn_date", default="today", help="Transaction date (default: today)")
@click.option(
    "--type",
    "operation_type",
    type=click.Choice(SINGLE_LEG_OPERATIONS),
    default=OperationType.EXPENSE.value,
    show_default=True,
    help="Operation type",
)
@click.option("--description", help="Transaction description")
@click.option("--category", help="Category path (e.g., 'Housing > Rent')")
@click.option("--notes", help="Notes")
@click.pass_context
def add_transaction(
    ctx,
    account: str,
    amount: str,
    txn_date: str,
    operation_type: str,
    description: str | None,
    category: str | None,
    notes: str | None,
):
    """Record a single-leg transaction.

    Examples:
        finledger transaction add --account "Main" --amount 89.90 --category "Groceries"
        finledger transaction add --account "Main" --amount 5000 --type receipt
    """
    db = ctx.obj["db"]
    service = TransactionService(db)
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)
    category_id = resolve_category_or_exit(ctx, CategoryService(db), category)
    parsed_date = parse_cli_date(ctx, txn_date)
    parsed_amount = parse_cli_amount(ctx, amount)

    try:
        transaction_id = service.create_transaction(
            account_id=account_id,
            date=parsed_date,
            operation_type=OperationType(operation_type),
            amount=abs(parsed_amount),
            description=description,
            category_id=category_id,
            notes=notes,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created transaction {transaction_id}")


@transaction_group.command("transfer")
@click.option("--from", "from_account", required=True, help="Source account name or ID")
@click.option("--to", "to_account", required=True, help="Destination account name or ID")
@click.option("--amount", required=True, help="Amount to move")
@click.option("--date", "txn_date", default="today", help="Transfer date (default: today)")
@click.option("--description", help="Transfer description")
@click.pass_context
def transfer(ctx, from_account: str, to_account: str, amount: str, txn_date: str, description: str | None):
    """Move money between two accounts."""
    db = ctx.obj["db"]
    account_service = AccountService(db)
    from_id = resolve_account_or_exit(ctx, account_service, from_account)
    to_id = resolve_account_or_exit(ctx, account_service, to_account)
    parsed_date = parse_cli_date(ctx, txn_date)
    parsed_amount = parse_cli_amount(ctx, amount)

    try:
        group_id = TransactionService(db).create_transfer(
            from_id, to_id, parsed_date, abs(parsed_amount), description=description
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created transfer {group_id}")


@transaction_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD or DD/MM/YYYY)")
@click.option("--end-date", help="End date (YYYY-MM-DD or DD/MM/YYYY)")
@click.option("--account", help="Account name or ID")
@click.pass_context
def list_transactions(ctx, start_date: str | None, end_date: str | None, account: str | None):
    """List transactions ordered by date."""
    db = ctx.obj["db"]
    service = TransactionService(db)
    account_service = AccountService(db)
    category_service = CategoryService(db)

    start = parse_cli_date(ctx, start_date, "start date")
    end = parse_cli_date(ctx, end_date, "end date")
    account_id = resolve_account_or_exit(ctx, account_service, account) if account else None

    transactions = service.list_transactions(start_date=start, end_date=end, account_id=account_id)
    if not transactions:
        click.echo("No transactions found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts(include_hidden=True)}
    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 100)
    for txn in transactions:
        sign = "+" if txn.flow.is_inflow else "-"
        category_name = (
            category_service.format_category_path(txn.category_id) if txn.category_id else ""
        )
        check = "x" if txn.conciliated else " "
        click.echo(
            f"{txn.id:5d} [{check}] {txn.date} | {accounts.get(txn.account_id, 'Unknown'):15s} | "
            f"{sign + format_money(txn.amount):>13s} | {txn.operation_type.value:23s} | "
            f"{txn.description or ''} {f'({category_name})' if category_name else ''}".rstrip()
        )


@transaction_group.command("delete")
@click.argument("transaction_id", type=int)
@click.pass_context
def delete_transaction(ctx, transaction_id: int):
    """Delete a transaction and any paired legs."""
    try:
        count = TransactionService(ctx.obj["db"]).delete_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted {count} transaction(s)")


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
