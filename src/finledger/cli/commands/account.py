"""Account management commands."""

import click
from finledger.cli.account_resolution import resolve_account_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.account import AccountService
from finledger.domain.entities import AccountType
from finledger.domain.errors import DomainError

ACCOUNT_TYPES = [t.value for t in AccountType]


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option(
    "--type",
    "account_type",
    type=click.Choice(ACCOUNT_TYPES),
    default=AccountType.CHECKING.value,
    show_default=True,
    help="Kind of account",
)
@click.option("--institution", default="", help="Bank or broker holding the account")
@click.pass_context
def create_account(ctx, name: str, account_type: str, institution: str):
    """Create a new account.

    Examples:
        finledger account create "Main Checking" --institution "Bank A"
        finledger account create "Visa" --type credit_card
        finledger account create "Reserve" --type emergency_reserve
    """
    service = AccountService(ctx.obj["db"])

    try:
        account_id = service.create_account(
            name=name, account_type=AccountType(account_type), institution=institution
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created account '{name}' (ID: {account_id})")


@account_group.command("list")
@click.option("--all", "include_hidden", is_flag=True, help="Include hidden accounts")
@click.pass_context
def list_accounts(ctx, include_hidden: bool):
    """List accounts."""
    service = AccountService(ctx.obj["db"])

    accounts = service.list_accounts(include_hidden=include_hidden)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 70)
    for acc in accounts:
        hidden = " (hidden)" if acc.hidden else ""
        click.echo(
            f"ID: {acc.id:3d} | {acc.name:20s} | {acc.account_type.value:17s} | "
            f"{acc.institution}{hidden}"
        )


@account_group.command("hide")
@click.argument("account", metavar="ACCOUNT")
@click.option("--unhide", is_flag=True, help="Show the account again")
@click.pass_context
def hide_account(ctx, account: str, unhide: bool) -> None:
    """Hide an account from lists and totals.

    ACCOUNT can be an account name or ID. Hidden accounts keep their
    transactions and history.
    """
    service = AccountService(ctx.obj["db"])
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        service.set_hidden(account_id, hidden=not unhide)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{'Unhid' if unhide else 'Hid'} account {account_id}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
