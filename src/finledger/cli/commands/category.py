"""Category management commands."""

from collections import defaultdict
from typing import Optional

import click
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.category import CategoryService
from finledger.domain.entities import Category, CategoryNature
from finledger.domain.errors import DomainError


def print_category_tree(
    children: dict[Optional[int], list[Category]], parent_id: Optional[int] = None, indent: int = 0
) -> None:
    """Recursively print category tree."""
    for cat in sorted(children.get(parent_id, []), key=lambda c: c.name):
        prefix = "  " * indent
        click.echo(f"{prefix}{cat.name} (ID: {cat.id}, {cat.nature.value})")
        print_category_tree(children, cat.id, indent + 1)


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List all categories in tree format."""
    service = CategoryService(ctx.obj["db"])

    categories = service.list_categories()
    if not categories:
        click.echo("No categories found.")
        return

    children: dict[Optional[int], list[Category]] = defaultdict(list)
    for cat in categories:
        children[cat.parent_id].append(cat)

    click.echo("\nCategories:")
    print_category_tree(children)


@category_group.command("create")
@click.argument("name")
@click.option("--parent", help="Parent category path (e.g., 'Housing')")
@click.option(
    "--nature",
    type=click.Choice([n.value for n in CategoryNature], case_sensitive=False),
    default=CategoryNature.EXPENSE.value,
    help="Category nature (default: expense)",
)
@click.pass_context
def create_category(ctx, name: str, parent: str | None, nature: str):
    """Create a new category."""
    service = CategoryService(ctx.obj["db"])

    try:
        category_id = service.create_category(
            name=name, parent_path=parent, nature=CategoryNature(nature.lower())
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    parent_str = f" under '{parent}'" if parent else ""
    click.echo(f"Created category '{name}'{parent_str} (ID: {category_id})")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
