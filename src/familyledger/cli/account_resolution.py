"""CLI helpers for family and account resolution."""

from __future__ import annotations

import click

from familyledger.ledger import Ledger
from familyledger.utils.account_resolver import resolve_account, resolve_family


def resolve_family_or_exit(ctx: click.Context, ledger: Ledger, family: str | int) -> int:
    """Resolve family name or ID, or exit with a CLI error."""
    try:
        return resolve_family(ledger.families, family)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)


def resolve_account_or_exit(
    ctx: click.Context, ledger: Ledger, family_id: int, account: str | int
) -> int:
    """Resolve account name or ID within a family, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(ledger.accounts, family_id, account)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)


def family_option(func):
    """Add the shared --family option (name or ID)."""
    return click.option(
        "--family",
        "-f",
        required=True,
        envvar="FAMILYLEDGER_FAMILY",
        help="Family name or ID (or FAMILYLEDGER_FAMILY)",
    )(func)
