"""``ballot-api`` command line entry point.

Subcommand groups are attached at import time; every command runs with
logging configured from the environment first.
"""

import typer

from ballot_api import __version__
from ballot_api.core.config import get_settings
from ballot_api.core.logging import setup_logging

app = typer.Typer(name="ballot-api", help="Union balloting service: server, schema, members, and elections")


@app.callback()
def _configure(
    log_level: str | None = typer.Option(None, "--log-level", help="Override LOG_LEVEL for this invocation"),
) -> None:
    settings = get_settings()
    setup_logging(log_level or settings.log_level, log_dir=settings.log_dir)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),  # noqa: S104
    port: int = typer.Option(8000, "--port", help="Port to bind"),
    workers: int = typer.Option(1, "--workers", min=1, help="Worker processes (ignored with --reload)"),
    reload: bool = typer.Option(False, "--reload", help="Restart on source changes (development)"),
) -> None:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    uvicorn.run(
        "ballot_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=None if reload else workers,
    )


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


def _attach_groups() -> None:
    from ballot_api.cli.db_cmd import db_app
    from ballot_api.cli.election_cmd import election_app
    from ballot_api.cli.user_cmd import user_app

    app.add_typer(db_app, name="db", help="Apply or inspect schema migrations")
    app.add_typer(user_app, name="user", help="Create and list member accounts")
    app.add_typer(election_app, name="election", help="Status sweep and counter reconciliation")


_attach_groups()
