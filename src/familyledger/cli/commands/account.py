"""Account management commands."""

import click

from familyledger.cli.account_resolution import (
    family_option,
    resolve_account_or_exit,
    resolve_family_or_exit,
)
from familyledger.cli.error_handling import handle_domain_error
from familyledger.domain.entities import AccountKind, AccountStatus
from familyledger.utils.amount_parser import parse_amount


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@family_option
@click.option(
    "--kind",
    type=click.Choice([k.value for k in AccountKind]),
    default=AccountKind.DEPOSITORY.value,
    show_default=True,
    help="Account kind",
)
@click.option("--currency", help="Account currency (defaults to the family currency)")
@click.option("--opening-balance", default="0", help="Balance before the first entry")
@click.option("--institution", help="Bank or institution name")
@click.pass_context
def create_account(
    ctx,
    name: str,
    family: str,
    kind: str,
    currency: str | None,
    opening_balance: str,
    institution: str | None,
):
    """Create a new account in a family.

    Examples:
        familyledger account create "Checking" --family Smith
        familyledger account create "Visa" --family 1 --kind credit_card
        familyledger account create "Euro Savings" -f Smith --currency EUR --opening-balance 500
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)

    try:
        opening = parse_amount(opening_balance)
    except ValueError as e:
        click.echo(f"Error: Invalid opening balance: {e}", err=True)
        ctx.exit(1)

    if currency is None:
        currency = ledger.families.get_family(family_id).currency

    try:
        account_id = ledger.accounts.create_account(
            family_id=family_id,
            name=name,
            currency=currency,
            kind=kind,
            opening_balance=opening,
            institution_name=institution,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created account '{name}' (ID: {account_id})")


@account_group.command("list")
@family_option
@click.pass_context
def list_accounts(ctx, family: str):
    """List the accounts of a family."""
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)

    accounts = ledger.accounts.list_accounts(family_id)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 90)
    for acc in accounts:
        click.echo(
            f"ID: {acc.id:3d} | {acc.name:20s} | {acc.kind.value:15s} | "
            f"{acc.classification.value:9s} | {acc.currency} | {acc.status.value}"
        )


@account_group.command("rename")
@click.argument("account", metavar="ACCOUNT")
@click.argument("new_name", metavar="NEW_NAME")
@family_option
@click.option("--institution", help="New institution name (optional)")
@click.pass_context
def rename_account(ctx, account: str, new_name: str, family: str, institution: str | None):
    """Rename an account.

    ACCOUNT can be an account name or ID.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    account_id = resolve_account_or_exit(ctx, ledger, family_id, account)

    try:
        ledger.accounts.rename_account(account_id, new_name, institution_name=institution)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Renamed account to '{new_name}'")


@account_group.command("status")
@click.argument("account", metavar="ACCOUNT")
@click.argument("status", type=click.Choice([s.value for s in AccountStatus]))
@family_option
@click.pass_context
def set_status(ctx, account: str, status: str, family: str):
    """Change the lifecycle status of an account.

    Disabled and pending_deletion accounts no longer accept entries.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    account_id = resolve_account_or_exit(ctx, ledger, family_id, account)

    try:
        new_status = ledger.accounts.set_status(account_id, status)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Account {account_id} is now {new_status.value}")


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@family_option
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def delete_account(ctx, account: str, family: str, yes: bool):
    """Delete an account with its entries, balances and transfers.

    ACCOUNT can be an account name or ID.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    account_id = resolve_account_or_exit(ctx, ledger, family_id, account)
    account_obj = ledger.accounts.get_account(account_id)

    # Confirm deletion
    if not yes and not click.confirm(
        f"Are you sure you want to delete account '{account_obj.name}' (ID: {account_id})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        ledger.accounts.delete_account(account_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted account '{account_obj.name}'")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
