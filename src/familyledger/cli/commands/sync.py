"""Sync commands: import bank statements and inspect sync runs."""

import click

from familyledger.cli.account_resolution import (
    family_option,
    resolve_account_or_exit,
    resolve_family_or_exit,
)
from familyledger.cli.date_filters import date_range_options, resolve_cli_date_range
from familyledger.cli.error_handling import handle_domain_error
from familyledger.domain.entities import SyncableType
from familyledger.domain.errors import SyncFailed
from familyledger.domain.providers import CSVStatementProvider


@click.group()
def sync_group():
    """Import external data and inspect sync runs."""
    pass


@sync_group.command("import")
@click.argument("account", metavar="ACCOUNT")
@click.argument("csv_file", type=click.Path(exists=True))
@family_option
@click.option("--date-column", default="Date", show_default=True, help="CSV column holding the date")
@click.option("--amount-column", default="Amount", show_default=True, help="CSV column holding the amount")
@click.option("--name-column", default="Description", show_default=True, help="CSV column holding the description")
@click.option("--id-column", help="CSV column holding the bank's transaction ID")
@click.option("--currency-column", help="CSV column holding the currency code")
@click.option("--negate", is_flag=True, help="Statement shows spending as positive amounts")
@date_range_options
@click.pass_context
def import_statement(
    ctx,
    account: str,
    csv_file: str,
    family: str,
    date_column: str,
    amount_column: str,
    name_column: str,
    id_column: str | None,
    currency_column: str | None,
    negate: bool,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
):
    """Import a CSV statement into an account through a sync run.

    Rows already imported (same transaction ID) are skipped, balances are
    recomputed from the earliest new entry and transfers are matched.

    Examples:
        familyledger sync import Checking statement.csv -f Smith
        familyledger sync import Visa visa.csv -f Smith --negate --id-column "Reference"
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    account_id = resolve_account_or_exit(ctx, ledger, family_id, account)
    window = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)

    column_map = {"date": date_column, "amount": amount_column, "name": name_column}
    if id_column:
        column_map["external_id"] = id_column
    if currency_column:
        column_map["currency"] = currency_column

    try:
        provider = CSVStatementProvider(csv_file, column_map=column_map, negate_amounts=negate)
    except ValueError as e:
        handle_domain_error(ctx, e)

    before = len(ledger.entries.list(account_id))
    try:
        sync = ledger.orchestrator.sync_account(account_id, window, provider=provider)
    except SyncFailed as e:
        for unit, message in sorted(e.failures.items()):
            click.echo(f"Error: Sync of {unit} failed: {message}", err=True)
        ctx.exit(1)
    except ValueError as e:
        handle_domain_error(ctx, e)
    imported = len(ledger.entries.list(account_id)) - before

    click.echo("\nImport complete:")
    click.echo(f"  Sync: {sync.id} ({sync.status.value})")
    click.echo(f"  Imported: {imported} entries")
    if provider.errors:
        click.echo(f"  Errors: {len(provider.errors)}")
        for error in provider.errors:
            click.echo(f"    {error}", err=True)


@sync_group.command("status")
@family_option
@click.option("--account", help="Account name or ID (the family's own syncs if omitted)")
@click.option("--all", "show_all", is_flag=True, help="Show every sync, not just the latest")
@click.pass_context
def sync_status(ctx, family: str, account: str | None, show_all: bool):
    """Show sync runs of a family or an account."""
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    if account is not None:
        unit = (SyncableType.ACCOUNT, resolve_account_or_exit(ctx, ledger, family_id, account))
    else:
        unit = (SyncableType.FAMILY, family_id)

    syncs = ledger.orchestrator.list_syncs(*unit)
    if not syncs:
        click.echo("No syncs found.")
        return
    for sync in syncs if show_all else syncs[:1]:
        window = f"{sync.window_start or '...'} to {sync.window_end or '...'}"
        line = f"Sync {sync.id:3d} | {sync.status.value:9s} | {window}"
        if sync.error:
            line += f" | {sync.error}"
        click.echo(line)


def register_commands(cli):
    """Register sync commands with main CLI."""
    cli.add_command(sync_group, name="sync")
