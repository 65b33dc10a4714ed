"""Balance commands."""

import click

from familyledger.cli.account_resolution import (
    family_option,
    resolve_account_or_exit,
    resolve_family_or_exit,
)
from familyledger.cli.date_filters import date_range_options, resolve_cli_date_range
from familyledger.cli.error_handling import handle_domain_error
from familyledger.utils.date_parser import parse_date


@click.group()
def balance_group():
    """Derive and show daily balances."""
    pass


@balance_group.command("recompute")
@family_option
@click.option("--account", help="Account name or ID (all family accounts if omitted)")
@date_range_options
@click.pass_context
def recompute(
    ctx,
    family: str,
    account: str | None,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
):
    """Recompute balances from the entry log.

    Without dates, each account is recomputed from its first entry through today.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    date_range = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period=period
    )

    if account is not None:
        account_ids = [resolve_account_or_exit(ctx, ledger, family_id, account)]
    else:
        account_ids = [acc.id for acc in ledger.accounts.list_accounts(family_id)]

    for account_id in account_ids:
        try:
            balances = ledger.calculator.recompute(account_id, date_range)
        except ValueError as e:
            handle_domain_error(ctx, e)
        if balances:
            last = balances[-1]
            click.echo(
                f"Account {account_id}: {len(balances)} day(s) recomputed, "
                f"balance on {last.date.isoformat()} is {last.balance:,.2f} {last.currency}"
            )


@balance_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@family_option
@click.option("--on", "on_date", help="Show only the balance on this date")
@date_range_options
@click.pass_context
def show(
    ctx,
    account: str,
    family: str,
    on_date: str | None,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
):
    """Show persisted daily balances of an account."""
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    account_id = resolve_account_or_exit(ctx, ledger, family_id, account)

    if on_date is not None:
        try:
            day = parse_date(on_date)
        except ValueError as e:
            click.echo(f"Error: Invalid date format: {e}", err=True)
            ctx.exit(1)
        bal = ledger.calculator.get_balance(account_id, day)
        if bal is None:
            click.echo("No balance recorded on or before that date.")
            return
        click.echo(f"{bal.date.isoformat()}: {bal.balance:,.2f} {bal.currency}")
        return

    date_range = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period=period
    )
    balances = ledger.calculator.list_balances(account_id, date_range)
    if not balances:
        click.echo("No balances found. Run 'balance recompute' first.")
        return

    click.echo(f"\n{'Date':10s} | {'Start':>14s} | {'Inflows':>12s} | {'Outflows':>12s} | {'Balance':>14s}")
    click.echo("-" * 74)
    for bal in balances:
        click.echo(
            f"{bal.date.isoformat()} | {bal.start_balance:>14,.2f} | {bal.inflows:>12,.2f} | "
            f"{bal.outflows:>12,.2f} | {bal.balance:>14,.2f}"
        )


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(balance_group, name="balance")
