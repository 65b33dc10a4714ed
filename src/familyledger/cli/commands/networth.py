"""Net worth command."""

import click

from familyledger.cli.account_resolution import family_option, resolve_family_or_exit
from familyledger.cli.error_handling import handle_domain_error
from familyledger.utils.date_parser import parse_date


@click.command("networth")
@family_option
@click.option("--date", "date_str", default="today", help="Date of the balance sheet")
@click.option("--verbose", "-v", is_flag=True, help="Show every account")
@click.pass_context
def networth(ctx, family: str, date_str: str, verbose: bool):
    """Show assets, liabilities and net worth in the family currency.

    Uses persisted balances; run 'balance recompute' first if entries changed.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    try:
        on_date = parse_date(date_str)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        sheet = ledger.balance_sheet.net_worth(family_id, on_date)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if verbose:
        for line in sheet.lines:
            click.echo(
                f"{line.name:20s} | {line.classification.value:9s} | "
                f"{line.balance:>14,.2f} {line.currency} | {line.normalized:>14,.2f} {sheet.currency}"
            )
        click.echo("-" * 80)
    click.echo(f"Assets:      {sheet.assets:>14,.2f} {sheet.currency}")
    click.echo(f"Liabilities: {sheet.liabilities:>14,.2f} {sheet.currency}")
    click.echo(f"Net worth:   {sheet.net_worth:>14,.2f} {sheet.currency}")


def register_commands(cli):
    """Register networth command with main CLI."""
    cli.add_command(networth)
