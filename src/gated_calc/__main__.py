"""CLI for Gated Calc.

Usage:
    python -m gated_calc init-db                 # Create tables and seed roles
    python -m gated_calc run                     # Interactive calculator session
    python -m gated_calc run --database-url URL  # Use another database
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from gated_calc.cli import ConsoleApp
from gated_calc.config import get_settings
from gated_calc.database.connection import db_manager
from gated_calc.database.migrations import init_database
from gated_calc.observability import metrics
from gated_calc.observability.logging import configure_logging

app = typer.Typer(
    name="gated-calc",
    help="Calculator gated by login, role permissions and a daily quota",
    no_args_is_help=True,
)
console = Console()


def _configure() -> None:
    settings = get_settings()
    configure_logging(environment=settings.environment, log_level=settings.log_level_name)


async def _init_db(database_url: Optional[str]) -> int:
    db_manager.initialize(database_url)
    try:
        return await init_database()
    finally:
        await db_manager.close()


async def _run_session(database_url: Optional[str]) -> int:
    db_manager.initialize(database_url)
    try:
        await init_database()
        return await ConsoleApp.build(console=console).run()
    finally:
        await db_manager.close()


@app.command("init-db")
def cmd_init_db(
    database_url: Optional[str] = typer.Option(None, "--database-url", help="Override DATABASE_URL"),
) -> None:
    """Create tables and seed the default roles and permissions."""
    _configure()
    added = asyncio.run(_init_db(database_url))
    console.print(f"[green]Database ready[/green] ({added} seed rows added)")


@app.command("run")
def cmd_run(
    database_url: Optional[str] = typer.Option(None, "--database-url", help="Override DATABASE_URL"),
) -> None:
    """Start an interactive calculator session."""
    _configure()
    settings = get_settings()
    if settings.enable_metrics:
        metrics.start_metrics_server(settings.metrics_port)

    code = asyncio.run(_run_session(database_url))
    if code:
        raise typer.Exit(code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
