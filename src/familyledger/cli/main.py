"""Main CLI entry point."""

import click

from familyledger.config import Settings
from familyledger.database.factories import create_sqlite_database
from familyledger.ledger import build_ledger
from familyledger.logging_config import configure_logging

# Import and register all commands at module level
from familyledger.cli.commands import (
    family,
    account,
    entry,
    balance,
    transfer,
    rate,
    sync,
    networth,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FAMILYLEDGER_DB_PATH environment variable)",
    envvar="FAMILYLEDGER_DB_PATH",
)
@click.pass_context
def cli(ctx, db_path: str | None):
    """Familyledger - household ledger.

    Record entries against a family's accounts, derive daily balances,
    match transfers between accounts and import bank statements.
    """
    ctx.ensure_object(dict)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            settings = Settings.from_env()
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        configure_logging(level=settings.log_level, json_output=settings.log_json)

        db = create_sqlite_database(database_path=db_path or settings.database_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["ledger"] = build_ledger(db, settings)


# Register all commands
family.register_commands(cli)
account.register_commands(cli)
entry.register_commands(cli)
balance.register_commands(cli)
transfer.register_commands(cli)
rate.register_commands(cli)
sync.register_commands(cli)
networth.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
