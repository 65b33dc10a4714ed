"""Exchange rate commands."""

import click

from familyledger.cli.error_handling import handle_domain_error
from familyledger.domain.currency import quantize
from familyledger.utils.amount_parser import parse_amount
from familyledger.utils.date_parser import parse_date


@click.group()
def rate_group():
    """Manage exchange rates."""
    pass


def _parse_day(ctx, value: str):
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)


@rate_group.command("set")
@click.argument("from_currency", metavar="FROM")
@click.argument("to_currency", metavar="TO")
@click.argument("rate", metavar="RATE")
@click.option("--date", "date_str", default="today", help="Date the rate applies to")
@click.pass_context
def set_rate(ctx, from_currency: str, to_currency: str, rate: str, date_str: str):
    """Record the rate converting one unit of FROM into TO on a date.

    Examples:
        familyledger rate set EUR USD 1.10 --date 2024-01-15
    """
    ledger = ctx.obj["ledger"]
    on_date = _parse_day(ctx, date_str)
    try:
        value = parse_amount(rate)
        ledger.normalizer.set_rate(from_currency, to_currency, on_date, value)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Set {from_currency.upper()}->{to_currency.upper()} on {on_date.isoformat()} to {value}")


@rate_group.command("show")
@click.option("--from", "from_currency", help="Only rates from this currency")
@click.option("--to", "to_currency", help="Only rates to this currency")
@click.pass_context
def show_rates(ctx, from_currency: str | None, to_currency: str | None):
    """List cached exchange rates."""
    ledger = ctx.obj["ledger"]
    try:
        rates = ledger.normalizer.list_rates(from_currency, to_currency)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not rates:
        click.echo("No exchange rates found.")
        return
    for r in rates:
        click.echo(f"{r.date.isoformat()} | {r.from_currency}->{r.to_currency} | {r.rate} | {r.source}")


@rate_group.command("convert")
@click.argument("amount", metavar="AMOUNT")
@click.argument("from_currency", metavar="FROM")
@click.argument("to_currency", metavar="TO")
@click.option("--date", "date_str", default="today", help="Date of the rate to use")
@click.pass_context
def convert(ctx, amount: str, from_currency: str, to_currency: str, date_str: str):
    """Convert an amount using the rate cached for the date."""
    ledger = ctx.obj["ledger"]
    on_date = _parse_day(ctx, date_str)
    try:
        value = parse_amount(amount)
        converted = ledger.normalizer.normalize(
            value, from_currency.upper(), to_currency.upper(), on_date
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{value} {from_currency.upper()} = {quantize(converted, to_currency.upper())} {to_currency.upper()}")


def register_commands(cli):
    """Register rate commands with main CLI."""
    cli.add_command(rate_group, name="rate")
