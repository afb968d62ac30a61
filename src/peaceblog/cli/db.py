"""Database management CLI commands."""

import asyncio

import typer
from rich.console import Console

from peaceblog.database import close_db, drop_db, init_db

console = Console()
app = typer.Typer(help="Database management commands")


def _run(coro) -> None:
    async def _with_cleanup():
        try:
            await coro
        finally:
            await close_db()

    asyncio.run(_with_cleanup())


@app.command("init")
def init():
    """Create any missing tables."""
    console.print("[dim]Creating tables...[/dim]")
    _run(init_db())
    console.print("[green]Database ready![/green]")


@app.command("drop")
def drop(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Drop all tables.

    WARNING: This will delete all data!
    """
    if not force:
        console.print("[bold red]WARNING:[/bold red] This will delete ALL data in the database!")
        if not typer.confirm("Are you sure you want to continue?"):
            console.print("[dim]Cancelled[/dim]")
            raise typer.Exit(0)

    _run(drop_db())
    console.print("[green]All tables dropped.[/green]")
