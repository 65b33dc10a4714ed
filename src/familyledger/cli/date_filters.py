"""CLI helpers for date range options."""

from datetime import date

import click

from familyledger.utils.date_parser import PERIODS, get_date_range, parse_date


def date_range_options(func):
    """Add --start-date, --end-date and --period to a command."""
    func = click.option(
        "--period",
        type=click.Choice(PERIODS),
        help="Named period instead of explicit dates",
    )(func)
    func = click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")(func)
    func = click.option(
        "--start-date", help="Start date (YYYY-MM-DD or relative like '30 days ago')"
    )(func)
    return func


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period: str | None = None,
    default_range: tuple[date, date] | None = None,
) -> tuple[date | None, date | None]:
    """Resolve a date range from a named period or explicit dates.

    Exits with an error when the two are combined or a date does not parse.
    """
    if period and (start_date or end_date):
        click.echo("Error: --period cannot be combined with --start-date or --end-date.", err=True)
        ctx.exit(1)

    if period:
        return get_date_range(period)

    bounds = []
    for label, raw in (("start", start_date), ("end", end_date)):
        if not raw:
            bounds.append(None)
            continue
        try:
            bounds.append(parse_date(raw))
        except ValueError as e:
            click.echo(f"Error: Invalid {label} date: {e}", err=True)
            ctx.exit(1)

    start, end = bounds
    if start is None and end is None and default_range is not None:
        return default_range
    if start is not None and end is not None and start > end:
        click.echo("Error: Start date must not be after end date.", err=True)
        ctx.exit(1)
    return start, end
