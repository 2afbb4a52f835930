"""Statement import and review commands."""

from pathlib import Path

import click
from finledger.cli.account_resolution import resolve_account_or_exit, resolve_category_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.cli.parsing import format_money
from finledger.domain.account import AccountService
from finledger.domain.category import CategoryService
from finledger.domain.entities import OperationType, VehicleOperation, loan_ref
from finledger.domain.errors import DomainError
from finledger.domain.statement_import import StatementImportService, is_ready


def read_statement_file(path: str) -> str:
    """Read a bank export, accepting UTF-8 (with or without BOM) or Latin-1."""
    raw = Path(path).read_bytes()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


@click.command("import")
@click.argument("statement_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Account the statement belongs to (name or ID)")
@click.option("--preview", is_flag=True, help="Show the parsed rows without storing them")
@click.pass_context
def import_statement(ctx, statement_file: str, account: str, preview: bool):
    """Import a CSV or OFX bank statement for review."""
    db = ctx.obj["db"]
    service = StatementImportService(db)
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)
    content = read_statement_file(statement_file)

    try:
        if preview:
            parsed = service.preview(content, account_id)
            candidates = parsed.candidates
            skipped = parsed.skipped_rows
        else:
            statement_id = service.import_statement(
                content, account_id, file_name=Path(statement_file).name
            )
            statement = service.require_statement(statement_id)
            candidates = statement.candidates
            skipped = statement.skipped_rows
    except DomainError as e:
        handle_domain_error(ctx, e)

    _print_candidates(candidates)
    duplicates = sum(1 for c in candidates if c.is_potential_duplicate)
    click.echo("\nImport complete:" if not preview else "\nPreview:")
    click.echo(f"  Rows: {len(candidates)}")
    click.echo(f"  Potential duplicates: {duplicates}")
    click.echo(f"  Skipped: {skipped}")
    if not preview:
        click.echo(f"  Statement ID: {statement_id}")


def _print_candidates(candidates) -> None:
    for c in candidates:
        marks = []
        if c.is_potential_duplicate:
            marks.append("duplicate")
        elif is_ready(c):
            marks.append("ready")
        if c.is_contabilized:
            marks.append("committed")
        operation = c.operation_type.value if c.operation_type else "?"
        label = f"{c.id:5d} " if c.id is not None else ""
        click.echo(
            f"{label}{c.date} | {format_money(c.amount):>12s} | {operation:23s} | "
            f"{c.description:35s} {' '.join(marks)}".rstrip()
        )


@click.group()
def statement_group():
    """Review and commit imported statements."""
    pass


@statement_group.command("list")
@click.pass_context
def list_statements(ctx):
    """List imported statements and their review progress."""
    service = StatementImportService(ctx.obj["db"])
    statements = service.list_statements()
    if not statements:
        click.echo("No imported statements.")
        return

    for statement in statements:
        counts = service.review_counts(statement.id)
        click.echo(
            f"ID: {statement.id:3d} | {statement.file_name or '-':25s} | {statement.status.value:14s} | "
            f"ready {counts.ready}, pending {counts.pending}, duplicates {counts.duplicates}, "
            f"committed {counts.contabilized}"
        )


@statement_group.command("show")
@click.argument("statement_id", type=int)
@click.pass_context
def show_statement(ctx, statement_id: int):
    """Show the rows of an imported statement."""
    try:
        statement = StatementImportService(ctx.obj["db"]).require_statement(statement_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    _print_candidates(statement.candidates)


@statement_group.command("classify")
@click.argument("statement_id", type=int)
@click.argument("candidate_id", type=int)
@click.option("--type", "operation_type", type=click.Choice([op.value for op in OperationType]))
@click.option("--category", help="Category path")
@click.option("--description", help="Description to record")
@click.option("--to", "destination", help="Transfer destination account (name or ID)")
@click.option("--investment", help="Investment account (name or ID)")
@click.option("--loan", "loan_id", type=int, help="Loan paid by this row")
@click.option("--installment", type=int, help="Loan installment number")
@click.option("--vehicle", type=click.Choice([v.value for v in VehicleOperation]))
@click.option("--not-duplicate", is_flag=True, help="Clear the potential duplicate flag")
@click.pass_context
def classify(
    ctx,
    statement_id: int,
    candidate_id: int,
    operation_type: str | None,
    category: str | None,
    description: str | None,
    destination: str | None,
    investment: str | None,
    loan_id: int | None,
    installment: int | None,
    vehicle: str | None,
    not_duplicate: bool,
):
    """Classify one row of an imported statement."""
    db = ctx.obj["db"]
    accounts = AccountService(db)
    changes = {}
    if operation_type is not None:
        changes["operation_type"] = OperationType(operation_type)
    if category is not None:
        changes["category_id"] = resolve_category_or_exit(ctx, CategoryService(db), category)
    if description is not None:
        changes["description"] = description
    if destination is not None:
        changes["destination_account_id"] = resolve_account_or_exit(ctx, accounts, destination)
    if investment is not None:
        changes["investment_account_id"] = resolve_account_or_exit(ctx, accounts, investment)
    if loan_id is not None:
        changes["loan_ref"] = loan_ref(loan_id)
    if installment is not None:
        changes["installment_number"] = installment
    if vehicle is not None:
        changes["vehicle_operation"] = VehicleOperation(vehicle)
    if not_duplicate:
        changes["is_potential_duplicate"] = False

    try:
        candidate = StatementImportService(db).classify_candidate(statement_id, candidate_id, **changes)
    except DomainError as e:
        handle_domain_error(ctx, e)
    state = "ready" if is_ready(candidate) else "pending"
    click.echo(f"Updated row {candidate_id} ({state})")


@statement_group.command("commit")
@click.argument("statement_id", type=int)
@click.pass_context
def commit(ctx, statement_id: int):
    """Write every ready row of a statement to the ledger."""
    service = StatementImportService(ctx.obj["db"])
    try:
        created = service.commit_statement(statement_id)
        statement = service.require_statement(statement_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created {len(created)} transaction(s)")
    click.echo(f"Statement {statement_id} is {statement.status.value}")


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_statement)
    cli.add_command(statement_group, name="statement")
