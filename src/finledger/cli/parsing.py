"""CLI helpers for parsing dates, months and amounts."""

from datetime import date
from decimal import Decimal

import click

from finledger.utils.amount_parser import parse_amount
from finledger.utils.date_parser import parse_date, parse_month


def parse_cli_date(ctx: click.Context, value: str | None, label: str = "date") -> date | None:
    """Parse an optional date option, exiting with an error when it is invalid."""
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def parse_cli_month(ctx: click.Context, value: str | None) -> date:
    """Parse a --month option (YYYY-MM); defaults to the current month."""
    if value is None:
        return date.today().replace(day=1)
    try:
        return parse_month(value)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


def parse_cli_amount(ctx: click.Context, value: str, label: str = "amount") -> Decimal:
    """Parse a money argument, exiting with an error when it is invalid."""
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def format_money(amount: Decimal) -> str:
    """Render an amount with thousands separators and two decimals."""
    return f"{amount:,.2f}"
