"""Backup export and import commands."""

from pathlib import Path

import click
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.backup import BackupService
from finledger.domain.errors import DomainError


@click.group()
def backup_group():
    """Export or restore the whole ledger as JSON."""
    pass


@backup_group.command("export")
@click.argument("output", type=click.Path(dir_okay=False), required=False)
@click.pass_context
def export_backup(ctx, output: str | None):
    """Write a JSON backup to OUTPUT (or stdout)."""
    text = BackupService(ctx.obj["db"]).dumps()
    if output is None:
        click.echo(text)
        return
    Path(output).write_text(text, encoding="utf-8")
    click.echo(f"Exported backup to {output}")


@backup_group.command("import")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def import_backup(ctx, backup_file: str, yes: bool):
    """Replace the whole ledger with the contents of BACKUP_FILE."""
    if not yes and not click.confirm("This replaces all existing data. Continue?"):
        click.echo("Import cancelled.")
        return

    text = Path(backup_file).read_text(encoding="utf-8")
    try:
        snapshot = BackupService(ctx.obj["db"]).loads(text)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Restored {len(snapshot.accounts)} accounts, {len(snapshot.transactions)} transactions "
        f"and {len(snapshot.bills)} bills"
    )


def register_commands(cli):
    """Register backup commands with main CLI."""
    cli.add_command(backup_group, name="backup")
