"""Loan commands."""

from datetime import date

import click
from finledger.cli.account_resolution import resolve_account_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.cli.parsing import format_money, parse_cli_amount, parse_cli_date
from finledger.domain.account import AccountService
from finledger.domain.errors import DomainError
from finledger.domain.loan import LoanService


@click.group()
def loan_group():
    """Manage loans and their amortization schedules."""
    pass


@loan_group.command("create")
@click.argument("contract")
@click.option("--principal", required=True, help="Amount borrowed")
@click.option("--account", help="Account that received the money (name or ID)")
@click.option("--rate", help="Monthly interest rate in percent (e.g., 2 for 2%)")
@click.option("--term", type=int, help="Number of monthly installments")
@click.option("--start", "start_date", help="Due date of the first installment")
@click.option("--installment", help="Fixed installment (computed when omitted)")
@click.pass_context
def create_loan(
    ctx,
    contract: str,
    principal: str,
    account: str | None,
    rate: str | None,
    term: int | None,
    start_date: str | None,
    installment: str | None,
):
    """Register a loan contract.

    A loan without rate, term and start date waits for 'loan configure'.

    Examples:
        finledger loan create "Car loan" --principal 12000 --rate 2 --term 12 --start 2024-02-10
        finledger loan create "Bank loan" --principal 5000
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account) if account else None

    try:
        loan_id = LoanService(db).create_loan(
            contract=contract,
            principal=parse_cli_amount(ctx, principal, "principal"),
            account_id=account_id,
            start_date=parse_cli_date(ctx, start_date, "start date"),
            monthly_rate=parse_cli_amount(ctx, rate, "rate") if rate is not None else None,
            term_months=term,
            installment=parse_cli_amount(ctx, installment, "installment") if installment else None,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    loan = LoanService(db).require_loan(loan_id)
    click.echo(f"Created loan '{contract}' (ID: {loan_id}, {loan.status.value})")
    if loan.installment:
        click.echo(f"Installment: {format_money(loan.installment)} x {loan.term_months}")


@loan_group.command("configure")
@click.argument("loan_id", type=int)
@click.option("--rate", required=True, help="Monthly interest rate in percent")
@click.option("--term", type=int, required=True, help="Number of monthly installments")
@click.option("--start", "start_date", required=True, help="Due date of the first installment")
@click.option("--installment", help="Fixed installment (computed when omitted)")
@click.pass_context
def configure_loan(ctx, loan_id: int, rate: str, term: int, start_date: str, installment: str | None):
    """Complete the terms of a pending loan and activate it."""
    try:
        loan = LoanService(ctx.obj["db"]).configure_loan(
            loan_id,
            monthly_rate=parse_cli_amount(ctx, rate, "rate"),
            term_months=term,
            start_date=parse_cli_date(ctx, start_date, "start date"),
            installment=parse_cli_amount(ctx, installment, "installment") if installment else None,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Configured loan {loan.id}: {format_money(loan.installment)} x {loan.term_months} "
        f"at {loan.monthly_rate.normalize():f}% per month"
    )


@loan_group.command("list")
@click.pass_context
def list_loans(ctx):
    """List loans with their outstanding balance."""
    service = LoanService(ctx.obj["db"])
    loans = service.list_loans()
    if not loans:
        click.echo("No loans found.")
        return

    today = date.today()
    click.echo("\nLoans:")
    click.echo("-" * 80)
    for loan in loans:
        click.echo(
            f"ID: {loan.id:3d} | {loan.contract:25s} | {loan.status.value:21s} | "
            f"outstanding {format_money(service.outstanding_balance(loan.id, today))}"
        )


@loan_group.command("schedule")
@click.argument("loan_id", type=int)
@click.pass_context
def show_schedule(ctx, loan_id: int):
    """Show the amortization schedule of a loan."""
    service = LoanService(ctx.obj["db"])
    try:
        loan = service.require_loan(loan_id)
        rows = service.installment_rows(loan_id, date.today())
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not rows:
        click.echo(f"Loan {loan_id} has no schedule yet. Run 'loan configure' first.")
        return

    click.echo(f"\n{loan.contract}: {format_money(loan.principal)} at {loan.monthly_rate.normalize():f}% per month")
    click.echo(f"{'#':>3s}  {'Due':10s}  {'Interest':>10s}  {'Principal':>10s}  {'Balance':>12s}  Status")
    click.echo("-" * 66)
    for row in rows:
        click.echo(
            f"{row.installment_number:3d}  {row.due_date}  {format_money(row.interest):>10s}  "
            f"{format_money(row.principal_paid):>10s}  {format_money(row.remaining_balance):>12s}  "
            f"{row.status.value}"
        )


def register_commands(cli):
    """Register loan commands with main CLI."""
    cli.add_command(loan_group, name="loan")
