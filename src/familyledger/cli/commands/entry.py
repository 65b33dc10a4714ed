"""Entry commands: append, list and void ledger entries."""

import click

from familyledger.cli.account_resolution import (
    family_option,
    resolve_account_or_exit,
    resolve_family_or_exit,
)
from familyledger.cli.date_filters import date_range_options, resolve_cli_date_range
from familyledger.cli.error_handling import handle_domain_error
from familyledger.domain.entities import (
    EntryKind,
    NewEntry,
    TradeDetail,
    TransactionDetail,
    ValuationDetail,
)
from familyledger.utils.amount_parser import parse_amount, parse_money
from familyledger.utils.date_parser import parse_date


@click.group()
def entry_group():
    """Record and inspect ledger entries."""
    pass


def _run_follow_ups(ledger) -> None:
    result = ledger.run_follow_ups()
    for key in result.failed + result.dead:
        click.echo(f"Warning: follow-up job {key} failed; it will run again later", err=True)


@entry_group.command("add")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@family_option
@click.option("--date", "date_str", default="today", help="Entry date (YYYY-MM-DD or relative like 'yesterday')")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in EntryKind]),
    default=EntryKind.TRANSACTION.value,
    show_default=True,
    help="Entry kind",
)
@click.option("--name", help="Description of the entry")
@click.option("--notes", help="Notes (transactions only)")
@click.option("--ticker", help="Security ticker (trades only)")
@click.option("--quantity", help="Units bought (positive) or sold (negative) (trades only)")
@click.option("--price", help="Price per unit (trades only)")
@click.option("--external-id", help="Provider transaction ID, unique per account")
@click.pass_context
def add_entry(
    ctx,
    account: str,
    amount: str,
    family: str,
    date_str: str,
    kind: str,
    name: str | None,
    notes: str | None,
    ticker: str | None,
    quantity: str | None,
    price: str | None,
    external_id: str | None,
):
    """Append an entry to an account.

    AMOUNT is signed: positive for money into the account, negative for money
    out of it. A trailing currency code (e.g. "-20 EUR") records the entry in
    that currency; otherwise the account currency is used. For valuations,
    AMOUNT is the account value on that date.

    Examples:
        familyledger entry add Checking 2500 -f Smith --name "Salary"
        familyledger entry add Checking -- -45.10 -f Smith --date yesterday --name "Groceries"
        familyledger entry add House 350000 -f Smith --kind valuation
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    account_id = resolve_account_or_exit(ctx, ledger, family_id, account)

    try:
        entry_date = parse_date(date_str)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        value, currency = parse_money(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    match EntryKind(kind):
        case EntryKind.TRANSACTION:
            detail = TransactionDetail(name=name, notes=notes)
        case EntryKind.VALUATION:
            detail = ValuationDetail(name=name)
        case EntryKind.TRADE:
            if not (ticker and quantity and price):
                click.echo("Error: Trades require --ticker, --quantity and --price", err=True)
                ctx.exit(1)
            try:
                detail = TradeDetail(
                    ticker=ticker.upper(), quantity=parse_amount(quantity), price=parse_amount(price)
                )
            except ValueError as e:
                click.echo(f"Error: Invalid trade values: {e}", err=True)
                ctx.exit(1)

    try:
        entry_id = ledger.entries.append(
            NewEntry(
                account_id=account_id,
                date=entry_date,
                amount=value,
                currency=currency or ledger.accounts.get_account(account_id).currency,
                detail=detail,
                external_id=external_id,
            )
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Added {kind} entry {entry_id}")
    _run_follow_ups(ledger)


@entry_group.command("list")
@family_option
@click.option("--account", help="Account name or ID (all family accounts if omitted)")
@date_range_options
@click.option("--kind", type=click.Choice([k.value for k in EntryKind]), help="Only this entry kind")
@click.option("--min-amount", help="Minimum signed amount")
@click.option("--max-amount", help="Maximum signed amount")
@click.option("--search", help="Text contained in the name or notes")
@click.pass_context
def list_entries(
    ctx,
    family: str,
    account: str | None,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
    kind: str | None,
    min_amount: str | None,
    max_amount: str | None,
    search: str | None,
):
    """List entries in date order."""
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)
    date_range = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period=period
    )

    try:
        low = parse_amount(min_amount) if min_amount else None
        high = parse_amount(max_amount) if max_amount else None
    except ValueError as e:
        click.echo(f"Error: Invalid amount filter: {e}", err=True)
        ctx.exit(1)

    filters = dict(
        kind=EntryKind(kind) if kind else None, min_amount=low, max_amount=high, search=search
    )
    if account is not None:
        account_id = resolve_account_or_exit(ctx, ledger, family_id, account)
        entries = ledger.entries.list(account_id, date_range, **filters)
    else:
        entries = ledger.entries.list_family(family_id, date_range, **filters)

    if not entries:
        click.echo("No entries found.")
        return

    names = {acc.id: acc.name for acc in ledger.accounts.list_accounts(family_id)}
    click.echo(f"\nFound {len(entries)} entr{'y' if len(entries) == 1 else 'ies'}:")
    click.echo("-" * 100)
    for e in entries:
        label = getattr(e.detail, "name", None) or getattr(e.detail, "ticker", "") or ""
        suffix = f" (voids {e.voids_entry_id})" if e.is_compensation else ""
        click.echo(
            f"{e.id:5d} | {e.date.isoformat()} | {names.get(e.account_id, '?'):15s} | "
            f"{e.kind.value:11s} | {e.amount:>14,.2f} {e.currency} | {label}{suffix}"
        )


@entry_group.command("void")
@click.argument("entry_id", type=int)
@family_option
@click.option("--reason", required=True, help="Why the entry is being voided")
@click.pass_context
def void_entry(ctx, entry_id: int, family: str, reason: str):
    """Void an entry by appending its compensating entry.

    The original entry is kept; the compensation cancels it out.
    """
    ledger = ctx.obj["ledger"]
    family_id = resolve_family_or_exit(ctx, ledger, family)

    original = ledger.entries.get(entry_id)
    if original is None or ledger.accounts.get_account(original.account_id).family_id != family_id:
        click.echo(f"Error: Entry {entry_id} not found in family {family_id}", err=True)
        ctx.exit(1)

    try:
        compensation = ledger.entries.void(entry_id, reason)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Voided entry {entry_id} with compensating entry {compensation.id}")
    _run_follow_ups(ledger)


def register_commands(cli):
    """Register entry commands with main CLI."""
    cli.add_command(entry_group, name="entry")
