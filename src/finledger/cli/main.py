"""Main CLI entry point."""

import click
from finledger.config import Settings
from finledger.database.factories import create_sqlite_database
from finledger.logging import setup_logging

# Import and register all commands at module level
from finledger.cli.commands import (
    account,
    backup,
    balance,
    bills,
    category,
    import_cmd,
    loan,
    rule,
    transaction,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FINLEDGER_DB_PATH environment variable)",
    envvar="FINLEDGER_DB_PATH",
)
@click.option(
    "--log-level",
    help="Log level (overrides FINLEDGER_LOG_LEVEL environment variable)",
    envvar="FINLEDGER_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """Finledger - personal ledger and projection engine.

    Keep account balances, amortize loans, project monthly bills and
    reconcile imported bank statements.
    """
    ctx.ensure_object(dict)
    settings = Settings.from_env()
    setup_logging(level=log_level or settings.log_level, format_type=settings.log_format)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None and "db" not in ctx.obj:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
category.register_commands(cli)
transaction.register_commands(cli)
balance.register_commands(cli)
loan.register_commands(cli)
bills.register_commands(cli)
import_cmd.register_commands(cli)
rule.register_commands(cli)
backup.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
