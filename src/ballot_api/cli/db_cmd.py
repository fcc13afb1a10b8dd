"""Schema migration commands, driving Alembic through its Python API."""

from typing import TYPE_CHECKING

import typer
from loguru import logger

if TYPE_CHECKING:
    from alembic.config import Config

db_app = typer.Typer()

ALEMBIC_INI = "alembic.ini"


def _alembic_config() -> "Config":
    from alembic.config import Config

    return Config(ALEMBIC_INI)


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Revision to migrate to"),
    sql: bool = typer.Option(False, "--sql", help="Print the migration SQL instead of applying it"),
) -> None:
    """Apply migrations up to ``revision``."""
    from alembic import command

    logger.info("Migrating ballot schema up to {}{}", revision, " (offline SQL)" if sql else "")
    command.upgrade(_alembic_config(), revision, sql=sql)
    if not sql:
        logger.info("Ballot schema is at {}", revision)


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Revision to roll back to"),
) -> None:
    """Revert migrations down to ``revision``."""
    from alembic import command

    logger.warning("Rolling ballot schema back to {}", revision)
    command.downgrade(_alembic_config(), revision)


@db_app.command()
def current() -> None:
    """Show the revision the database is at."""
    from alembic import command

    command.current(_alembic_config(), verbose=True)


@db_app.command()
def history() -> None:
    """List known migrations, newest first."""
    from alembic import command

    command.history(_alembic_config(), indicate_current=True)
