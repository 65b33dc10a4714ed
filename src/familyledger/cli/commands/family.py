"""Family management commands."""

import click

from familyledger.cli.account_resolution import resolve_family_or_exit
from familyledger.cli.error_handling import handle_domain_error


@click.group()
def family_group():
    """Manage families."""
    pass


@family_group.command("create")
@click.argument("name", metavar="FAMILY_NAME")
@click.option("--currency", default="USD", show_default=True, help="Base currency (ISO 4217 code)")
@click.pass_context
def create_family(ctx, name: str, currency: str):
    """Create a new family.

    Examples:
        familyledger family create "Smith Household"
        familyledger family create "Dupont" --currency EUR
    """
    ledger = ctx.obj["ledger"]
    try:
        family_id = ledger.families.create_family(name=name, currency=currency)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created family '{name.strip()}' (ID: {family_id})")


@family_group.command("list")
@click.pass_context
def list_families(ctx):
    """List all families."""
    ledger = ctx.obj["ledger"]

    families = ledger.families.list_families()
    if not families:
        click.echo("No families found.")
        return

    click.echo("\nFamilies:")
    click.echo("-" * 60)
    for fam in families:
        click.echo(f"ID: {fam.id:3d} | {fam.name:30s} | Currency: {fam.currency}")


@family_group.command("delete")
@click.argument("family", metavar="FAMILY")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def delete_family(ctx, family: str, yes: bool):
    """Delete a family with all of its accounts and entries.

    FAMILY can be a family name or ID.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    family_obj = ledger.families.get_family(family_id)

    if not yes and not click.confirm(
        f"Delete family '{family_obj.name}' (ID: {family_id}) and everything it owns?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        ledger.families.delete_family(family_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted family '{family_obj.name}'")


def register_commands(cli):
    """Register family commands with main CLI."""
    cli.add_command(family_group, name="family")
