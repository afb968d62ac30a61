"""CLI commands using Typer."""

import typer

from peaceblog.cli.db import app as db_app
from peaceblog.cli.users import app as users_app

app = typer.Typer(name="peaceblog", help="Peace Blog CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """Peace Blog management commands."""
    import logging

    from peaceblog.logging import setup_logging

    setup_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@app.command()
def version():
    """Show version information."""
    from peaceblog import __version__

    typer.echo(f"Peace Blog v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from peaceblog.logging import get_uvicorn_log_config

    uvicorn.run(
        "peaceblog.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    app()
