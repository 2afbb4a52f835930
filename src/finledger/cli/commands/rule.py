"""Standardization rule commands."""

import click
from finledger.cli.account_resolution import resolve_category_or_exit
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.category import CategoryService
from finledger.domain.entities import OperationType
from finledger.domain.errors import DomainError
from finledger.domain.rules import RuleService


@click.group()
def rule_group():
    """Manage rules that classify imported rows."""
    pass


@rule_group.command("add")
@click.argument("pattern")
@click.option(
    "--type",
    "operation_type",
    type=click.Choice([op.value for op in OperationType]),
    default=OperationType.EXPENSE.value,
    show_default=True,
    help="Operation type assigned to matching rows",
)
@click.option("--category", help="Category path assigned to matching rows")
@click.option("--description", default="", help="Description template; {original} is the bank text")
@click.pass_context
def add_rule(ctx, pattern: str, operation_type: str, category: str | None, description: str):
    """Add a rule matching PATTERN anywhere in the bank description.

    Rules are tried in the order they were added; the first match wins.

    Examples:
        finledger rule add MERCADO --category "Groceries"
        finledger rule add "PIX RECEBIDO" --type receipt --description "Pix: {original}"
    """
    db = ctx.obj["db"]
    category_id = resolve_category_or_exit(ctx, CategoryService(db), category)
    try:
        rule_id = RuleService(db).add_rule(
            pattern,
            OperationType(operation_type),
            category_id=category_id,
            description_template=description,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created rule {rule_id} for '{pattern}'")


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List rules in the order they are applied."""
    db = ctx.obj["db"]
    categories = CategoryService(db)
    rules = RuleService(db).list_rules()
    if not rules:
        click.echo("No rules found.")
        return

    for rule in rules:
        category = categories.format_category_path(rule.category_id) if rule.category_id else "-"
        template = f" -> '{rule.description_template}'" if rule.description_template else ""
        click.echo(
            f"ID: {rule.id:3d} | {rule.pattern:20s} | {rule.operation_type.value:23s} | {category}{template}"
        )


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a rule."""
    try:
        RuleService(ctx.obj["db"]).delete_rule(rule_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted rule {rule_id}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
