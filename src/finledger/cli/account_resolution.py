"""CLI helpers for account and category resolution."""

from __future__ import annotations

import click
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.account import AccountService
from finledger.domain.category import CategoryService
from finledger.domain.errors import NotFoundError
from finledger.utils.account_resolver import resolve_account


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, account: str | int
) -> int:
    """Resolve account name or ID, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(account_service, account)
    except NotFoundError as exc:
        handle_domain_error(ctx, exc)


def resolve_category_or_exit(
    ctx: click.Context, category_service: CategoryService, path: str | None
) -> int | None:
    """Resolve a category path ("Parent > Child") to its ID, or exit.

    Returns None when no path was given.
    """
    if path is None:
        return None
    category = category_service.get_category_by_path(path)
    if category is None:
        handle_domain_error(ctx, NotFoundError(f"Category '{path}' not found"))
    return category.id
