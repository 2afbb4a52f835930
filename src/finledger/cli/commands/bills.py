"""Monthly bills commands."""

from datetime import date

import click
from finledger.cli.account_resolution import resolve_account_or_exit, resolve_category_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.cli.parsing import format_money, parse_cli_amount, parse_cli_date, parse_cli_month
from finledger.domain.account import AccountService
from finledger.domain.bills import BillService
from finledger.domain.category import CategoryService
from finledger.domain.entities import BillSourceType
from finledger.domain.errors import DomainError


@click.group()
def bills_group():
    """Track monthly obligations."""
    pass


@bills_group.command("list")
@click.option("--month", help="Month to show (YYYY-MM, default: this month)")
@click.pass_context
def list_bills(ctx, month: str | None):
    """Show tracked bills and untracked paid expenses of a month."""
    service = BillService(ctx.obj["db"])
    target = parse_cli_month(ctx, month)

    items = service.display_items(target)
    if not items:
        click.echo(f"No bills for {target:%Y-%m}.")
        return

    click.echo(f"\nBills for {target:%Y-%m}:")
    click.echo("-" * 80)
    for item in items:
        ref = f"#{item.bill_id}" if item.bill_id is not None else "ledger"
        click.echo(
            f"{ref:>7s} {item.due_date} | {item.description:35s} | "
            f"{format_money(item.amount):>12s} | {item.status.value}"
        )

    totals = service.month_totals(target)
    click.echo("-" * 80)
    click.echo(
        f"Paid: {format_money(totals.paid)}  Pending: {format_money(totals.pending)}  "
        f"Total: {format_money(totals.total)}"
    )


@bills_group.command("potential")
@click.option("--month", help="Month to show (YYYY-MM, default: this month)")
@click.option("--ahead", is_flag=True, help="Show unpaid installments due after the month instead")
@click.pass_context
def potential_bills(ctx, month: str | None, ahead: bool):
    """Show loan and insurance installments that can be tracked."""
    service = BillService(ctx.obj["db"])
    target = parse_cli_month(ctx, month)

    potentials = service.future_fixed_bills(target) if ahead else service.potential_fixed_bills(target)
    if not potentials:
        click.echo("No projected installments.")
        return

    for p in potentials:
        kind = "loan" if p.source_type == BillSourceType.LOAN_INSTALLMENT else "policy"
        flags = []
        if p.is_included:
            flags.append("tracked")
        if p.is_paid:
            flags.append("paid")
        click.echo(
            f"{kind} {p.source_ref} #{p.installment_number:<3d} {p.due_date} | {p.description:35s} | "
            f"{format_money(p.expected_amount):>12s} {' '.join(flags)}".rstrip()
        )


@bills_group.command("toggle")
@click.option("--loan", "loan_id", type=int, help="Loan ID")
@click.option("--policy", "policy_id", type=int, help="Insurance policy ID")
@click.option("--installment", type=int, required=True, help="Installment number")
@click.option("--off", is_flag=True, help="Stop tracking the installment")
@click.pass_context
def toggle_bill(ctx, loan_id: int | None, policy_id: int | None, installment: int, off: bool):
    """Start (or stop) tracking a loan or insurance installment.

    A past-due installment is paid right away when tracking starts.

    Examples:
        finledger bills toggle --loan 7 --installment 3
        finledger bills toggle --loan 7 --installment 3 --off
    """
    if (loan_id is None) == (policy_id is None):
        click.echo("Error: Specify exactly one of --loan or --policy", err=True)
        ctx.exit(1)

    service = BillService(ctx.obj["db"])
    if loan_id is not None:
        source_type, source_ref = BillSourceType.LOAN_INSTALLMENT, str(loan_id)
    else:
        source_type, source_ref = BillSourceType.INSURANCE_INSTALLMENT, str(policy_id)

    try:
        potential = service.find_potential_bill(source_type, source_ref, installment)
        bill_id = service.toggle_fixed_bill(potential, include=not off)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if off:
        click.echo(f"Stopped tracking installment {installment}")
    else:
        bill = service.require_bill(bill_id)
        paid = " (paid)" if bill.is_paid else ""
        click.echo(f"Tracking installment {installment} as bill {bill_id}{paid}")


@bills_group.command("add")
@click.argument("description")
@click.option("--due", "due_date", required=True, help="Due date")
@click.option("--amount", required=True, help="Expected amount")
@click.option("--installments", type=int, default=1, help="Split into monthly purchase installments")
@click.option("--account", help="Suggested paying account (name or ID)")
@click.option("--category", help="Suggested category path")
@click.pass_context
def add_bill(
    ctx,
    description: str,
    due_date: str,
    amount: str,
    installments: int,
    account: str | None,
    category: str | None,
):
    """Track a one-off bill or a purchase paid in installments."""
    db = ctx.obj["db"]
    service = BillService(db)
    account_id = resolve_account_or_exit(ctx, AccountService(db), account) if account else None
    category_id = resolve_category_or_exit(ctx, CategoryService(db), category)
    due = parse_cli_date(ctx, due_date, "due date")
    expected = parse_cli_amount(ctx, amount)

    try:
        if installments > 1:
            bill_ids = service.add_purchase_installments(
                description,
                expected,
                installments,
                due,
                suggested_account_id=account_id,
                suggested_category_id=category_id,
            )
        else:
            bill_ids = [
                service.add_bill(
                    description,
                    due,
                    expected,
                    suggested_account_id=account_id,
                    suggested_category_id=category_id,
                )
            ]
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created bill(s): {', '.join(str(i) for i in bill_ids)}")


@bills_group.command("pay")
@click.argument("bill_id", type=int)
@click.option("--date", "payment_date", help="Payment date (default: today)")
@click.option("--account", help="Paying account (default: the bill's suggested account)")
@click.pass_context
def pay_bill(ctx, bill_id: int, payment_date: str | None, account: str | None):
    """Mark a bill as paid, recording its payment in the ledger."""
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account) if account else None
    paid_on = parse_cli_date(ctx, payment_date, "payment date") or date.today()

    try:
        transaction_id = BillService(db).mark_paid(bill_id, payment_date=paid_on, account_id=account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Paid bill {bill_id} with transaction {transaction_id}")


@bills_group.command("unpay")
@click.argument("bill_id", type=int)
@click.pass_context
def unpay_bill(ctx, bill_id: int):
    """Undo a payment, deleting the transaction it created."""
    try:
        BillService(ctx.obj["db"]).unmark_paid(bill_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Bill {bill_id} is pending again")


@bills_group.command("exclude")
@click.argument("bill_id", type=int)
@click.option("--restore", is_flag=True, help="Include the bill again")
@click.pass_context
def exclude_bill(ctx, bill_id: int, restore: bool):
    """Hide an unpaid bill from the monthly view."""
    try:
        BillService(ctx.obj["db"]).exclude_bill(bill_id, excluded=not restore)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{'Restored' if restore else 'Excluded'} bill {bill_id}")


def register_commands(cli):
    """Register bills commands with main CLI."""
    cli.add_command(bills_group, name="bills")
