"""CLI commands for election lifecycle maintenance.

Persists derived statuses and reconciles vote counters against the vote log.
"""

import asyncio
import uuid
from typing import Annotated

import typer
from loguru import logger

election_app = typer.Typer()


@election_app.command("refresh-statuses")
def refresh_statuses() -> None:
    """Persist the current derived status of every election."""
    asyncio.run(_refresh_statuses_impl())


async def _refresh_statuses_impl() -> None:
    from ballot_api.core.config import get_settings
    from ballot_api.core.database import standalone_session
    from ballot_api.services.election_service import refresh_all_statuses

    settings = get_settings()
    async with standalone_session(settings.database_url, schema=settings.database_schema) as session:
        changed = await refresh_all_statuses(session)
    typer.echo(f"Updated status of {changed} election(s)")


@election_app.command("reconcile")
def reconcile(
    election_id: Annotated[
        str | None,
        typer.Option("--election-id", help="Election UUID (omit to reconcile every election)"),
    ] = None,
) -> None:
    """Recount vote counters from the vote log and correct any drift."""
    target = None
    if election_id is not None:
        try:
            target = uuid.UUID(election_id)
        except ValueError as e:
            typer.echo(f"Error: invalid election id '{election_id}'", err=True)
            raise typer.Exit(code=1) from e
    asyncio.run(_reconcile_impl(target))


async def _reconcile_impl(election_id: uuid.UUID | None) -> None:
    from sqlalchemy import select

    from ballot_api.core.config import get_settings
    from ballot_api.core.database import standalone_session
    from ballot_api.core.errors import NotFoundError
    from ballot_api.models.election import Election
    from ballot_api.services.results_service import reconcile_counters

    settings = get_settings()
    async with standalone_session(settings.database_url, schema=settings.database_schema) as session:
        if election_id is None:
            result = await session.execute(select(Election.id).order_by(Election.created_at))
            targets = list(result.scalars().all())
        else:
            targets = [election_id]

        corrected = 0
        for target in targets:
            try:
                report = await reconcile_counters(session, target)
            except NotFoundError as e:
                typer.echo(f"Error: election {target} not found", err=True)
                raise typer.Exit(code=1) from e
            for correction in report.corrections:
                typer.echo(f"{target} {correction.target}: {correction.stored} -> {correction.counted}")
            corrected += len(report.corrections)

    logger.info("Reconciled {} election(s), {} counter(s) corrected", len(targets), corrected)
    typer.echo(f"Reconciled {len(targets)} election(s); {corrected} counter(s) corrected")
