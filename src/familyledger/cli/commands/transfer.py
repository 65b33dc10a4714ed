"""Transfer matching commands."""

from datetime import timedelta

import click

from familyledger.cli.account_resolution import family_option, resolve_family_or_exit
from familyledger.cli.date_filters import date_range_options, resolve_cli_date_range
from familyledger.cli.error_handling import handle_domain_error


@click.group()
def transfer_group():
    """Match and review transfers between a family's accounts."""
    pass


def _describe(ledger, transfer) -> str:
    out = ledger.entries.get(transfer.outflow_entry_id)
    inflow = ledger.entries.get(transfer.inflow_entry_id)
    return (
        f"ID: {transfer.id:3d} | {out.date.isoformat()} {out.amount:,.2f} {out.currency} "
        f"(entry {out.id}, account {out.account_id}) -> "
        f"{inflow.date.isoformat()} {inflow.amount:,.2f} {inflow.currency} "
        f"(entry {inflow.id}, account {inflow.account_id})"
    )


@transfer_group.command("match")
@family_option
@date_range_options
@click.pass_context
def match_transfers(
    ctx, family: str, start_date: str | None, end_date: str | None, period: str | None
):
    """Pair outflows and inflows between accounts of the family.

    Defaults to the last 30 days. Window and tolerance come from
    FAMILYLEDGER_TRANSFER_WINDOW_DAYS and FAMILYLEDGER_TRANSFER_EPSILON.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    today = ledger.calculator.today()
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period=period,
        default_range=(today - timedelta(days=30), today),
    )

    before = {t.id for t in ledger.matcher.list_transfers(family_id)}
    try:
        transfers = ledger.matcher.match(family_id, (start or end, end or today))
    except ValueError as e:
        handle_domain_error(ctx, e)

    created = [t for t in transfers if t.id not in before]
    click.echo(f"Matched {len(created)} new transfer(s)")
    for transfer in sorted(created, key=lambda t: t.id):
        click.echo(_describe(ledger, transfer))


@transfer_group.command("list")
@family_option
@click.pass_context
def list_transfers(ctx, family: str):
    """List matched transfers."""
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)

    transfers = ledger.matcher.list_transfers(family_id)
    if not transfers:
        click.echo("No transfers found.")
        return
    for transfer in transfers:
        click.echo(_describe(ledger, transfer))


@transfer_group.command("reject")
@click.argument("transfer_id", type=int)
@click.pass_context
def reject_transfer(ctx, transfer_id: int):
    """Unpair a transfer and never propose the same pair again."""
    ledger = ctx.obj["ledger"]
    try:
        ledger.matcher.reject(transfer_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Rejected transfer {transfer_id}")


@transfer_group.command("unmatch")
@click.argument("transfer_id", type=int)
@click.pass_context
def unmatch_transfer(ctx, transfer_id: int):
    """Unpair a transfer; its entries may be matched again later."""
    ledger = ctx.obj["ledger"]
    try:
        ledger.matcher.unmatch(transfer_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Removed transfer {transfer_id}")


def register_commands(cli):
    """Register transfer commands with main CLI."""
    cli.add_command(transfer_group, name="transfer")
