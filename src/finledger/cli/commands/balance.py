"""Balance commands."""

import click
from finledger.cli.account_resolution import resolve_account_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.cli.parsing import format_money, parse_cli_date
from finledger.domain.account import AccountService
from finledger.domain.balance import BalanceService
from finledger.domain.errors import DomainError


@click.command("balance")
@click.option("--date", "as_of", default="today", help="Balance at the end of this day (default: today)")
@click.option("--account", help="Show a single account (name or ID)")
@click.option("--start-date", help="With --account, summarize movement from this date")
@click.option("--all", "include_hidden", is_flag=True, help="Include hidden accounts")
@click.pass_context
def balance(ctx, as_of: str, account: str | None, start_date: str | None, include_hidden: bool):
    """Show account balances as of a date.

    Examples:
        finledger balance
        finledger balance --date 2024-03-31
        finledger balance --account "Main" --start-date 2024-03-01 --date 2024-03-31
    """
    db = ctx.obj["db"]
    account_service = AccountService(db)
    service = BalanceService(db)
    on_date = parse_cli_date(ctx, as_of)

    if account is not None:
        account_id = resolve_account_or_exit(ctx, account_service, account)
        name = account_service.require_account(account_id).name
        start = parse_cli_date(ctx, start_date, "start date")
        if start is None:
            click.echo(f"{name}: {format_money(service.balance_as_of(account_id, on_date))}")
            return
        try:
            summary = service.period_summary(account_id, start, on_date)
        except DomainError as e:
            handle_domain_error(ctx, e)
        click.echo(f"\n{name} from {summary.start_date} to {summary.end_date}:")
        click.echo(f"  Opening balance: {format_money(summary.opening_balance)}")
        click.echo(f"  In:              {format_money(summary.total_in)}")
        click.echo(f"  Out:             {format_money(summary.total_out)}")
        click.echo(f"  Closing balance: {format_money(summary.closing_balance)}")
        click.echo(
            f"  Conciliated:     {summary.conciliated_count}/{summary.transaction_count}"
        )
        return

    names = {
        acc.id: acc.name for acc in account_service.list_accounts(include_hidden=include_hidden)
    }
    if not names:
        click.echo("No accounts found.")
        return

    balances = service.balances_as_of(on_date, include_hidden=include_hidden)
    click.echo(f"\nBalances as of {on_date}:")
    click.echo("-" * 40)
    for account_id, name in names.items():
        click.echo(f"{name:25s} {format_money(balances[account_id]):>14s}")


def register_commands(cli):
    """Register balance command with main CLI."""
    cli.add_command(balance)
