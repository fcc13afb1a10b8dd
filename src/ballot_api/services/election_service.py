"""Election service: election administration and lifecycle maintenance.

Orchestrates election CRUD, division-scoped listing, response assembly, and
the periodic sweep that persists derived statuses.
"""

import asyncio
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from ballot_api.core.errors import NotFoundError
from ballot_api.lib.lifecycle import ALL_DIVISIONS, ElectionStatus, as_utc, can_vote, derive_status
from ballot_api.models.election import Election
from ballot_api.models.user import User
from ballot_api.models.vote import Vote
from ballot_api.schemas.election import (
    ElectionCreateRequest,
    ElectionDetailResponse,
    ElectionSummary,
    ElectionUpdateRequest,
)

_TERMINAL_STATUSES = frozenset({ElectionStatus.COMPLETED, ElectionStatus.CANCELLED})


class ElectionConflictError(ValueError):
    """Raised when an administrative change conflicts with an election's state."""


def status_clause(status: ElectionStatus, now: datetime) -> ColumnElement[bool]:
    """SQL predicate selecting elections whose *derived* status is ``status`` at ``now``."""
    if status is ElectionStatus.CANCELLED:
        return Election.is_cancelled.is_(True)
    live = Election.is_cancelled.is_(False)
    if status is ElectionStatus.UPCOMING:
        return and_(live, Election.start_date > now)
    if status is ElectionStatus.ACTIVE:
        return and_(live, Election.start_date <= now, Election.end_date >= now)
    return and_(live, Election.end_date < now)


def refresh_status(election: Election, now: datetime) -> bool:
    """Bring the cached ``status`` column in line with the derived status.

    Returns:
        True if the cached value changed (the caller commits).
    """
    derived = derive_status(election, now)
    if election.status == derived.value:
        return False
    logger.debug("Election {} status {} -> {}", election.id, election.status, derived.value)
    election.status = derived.value
    return True


async def persist_statuses(session: AsyncSession, elections: Sequence[Election], now: datetime) -> int:
    """Write derived statuses back before they are returned to a client.

    Returns:
        Number of elections whose cached status changed.
    """
    changed = sum(1 for election in elections if refresh_status(election, now))
    if changed:
        await session.commit()
    return changed


def build_summary(election: Election, now: datetime) -> ElectionSummary:
    """Build an ElectionSummary with freshly derived status.

    ``election.candidates`` must be loaded.
    """
    return ElectionSummary(
        id=election.id,
        title=election.title,
        description=election.description,
        start_date=as_utc(election.start_date),
        end_date=as_utc(election.end_date),
        status=derive_status(election, now).value,
        division=election.division,
        max_candidates=election.max_candidates,
        total_votes=election.total_votes,
        is_secret_ballot=election.is_secret_ballot,
        candidate_count=sum(1 for c in election.candidates if c.is_active),
    )


def build_detail_response(
    election: Election,
    now: datetime,
    *,
    voter_division: str | None = None,
    has_voted: bool = False,
) -> ElectionDetailResponse:
    """Build an ElectionDetailResponse from an Election model instance.

    ``can_vote`` is lifecycle eligibility only; whether the caller already
    voted is reported separately in ``has_voted``.
    """
    summary = build_summary(election, now)
    return ElectionDetailResponse(
        **summary.model_dump(),
        has_voted=has_voted,
        can_vote=voter_division is not None and can_vote(election, voter_division, now),
        created_at=election.created_at,
        updated_at=election.updated_at,
    )


async def create_election(
    session: AsyncSession,
    request: ElectionCreateRequest,
    creator: User,
    now: datetime | None = None,
) -> Election:
    """Create a new election.

    Args:
        session: Async database session.
        request: Validated election data (dates already UTC, end > start).
        creator: The administrator creating it.
        now: Evaluation instant for the initial status.

    Returns:
        The created Election with candidates loaded (empty).
    """
    now = now or datetime.now(UTC)
    election = Election(
        title=request.title,
        description=request.description,
        start_date=request.start_date,
        end_date=request.end_date,
        division=request.division,
        max_candidates=request.max_candidates,
        is_secret_ballot=request.is_secret_ballot,
        created_by_id=creator.id,
        total_votes=0,
        is_cancelled=False,
    )
    election.status = derive_status(election, now).value
    session.add(election)
    await session.commit()
    logger.info("Created election {} ({}) scoped to {}", election.id, election.title, election.division)
    return await get_election_by_id(session, election.id)  # type: ignore[return-value]


async def get_election_by_id(session: AsyncSession, election_id: uuid.UUID) -> Election | None:
    """Get an election by ID with its candidates eagerly loaded."""
    result = await session.execute(
        select(Election)
        .options(selectinload(Election.candidates))
        .where(Election.id == election_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_election(session: AsyncSession, election_id: uuid.UUID) -> Election:
    """Like ``get_election_by_id`` but raises NotFoundError."""
    election = await get_election_by_id(session, election_id)
    if election is None:
        raise NotFoundError()
    return election


async def update_election(
    session: AsyncSession,
    election_id: uuid.UUID,
    request: ElectionUpdateRequest,
    now: datetime | None = None,
) -> Election:
    """Partially update an election that has not yet finished.

    Raises:
        NotFoundError: If the election does not exist.
        ElectionConflictError: If the election is completed or cancelled.
        ValueError: If the resulting window would not have end after start.
    """
    now = now or datetime.now(UTC)
    election = await require_election(session, election_id)
    if derive_status(election, now) in _TERMINAL_STATUSES:
        msg = "Completed or cancelled elections cannot be modified"
        raise ElectionConflictError(msg)

    update_data = request.model_dump(exclude_unset=True, exclude_none=True)
    start = update_data.get("start_date", as_utc(election.start_date))
    end = update_data.get("end_date", as_utc(election.end_date))
    if end <= start:
        msg = "End date must be after start date"
        raise ValueError(msg)
    if "max_candidates" in update_data:
        active = sum(1 for c in election.candidates if c.is_active)
        if update_data["max_candidates"] < active:
            msg = f"Election already has {active} active candidates"
            raise ElectionConflictError(msg)

    for field, value in update_data.items():
        setattr(election, field, value)
    refresh_status(election, now)

    await session.commit()
    return await require_election(session, election_id)


async def cancel_election(session: AsyncSession, election_id: uuid.UUID) -> Election:
    """Cancel an election. Cancellation is terminal.

    Raises:
        NotFoundError: If the election does not exist.
        ElectionConflictError: If the election is already cancelled.
    """
    election = await require_election(session, election_id)
    if election.is_cancelled:
        msg = "Election is already cancelled"
        raise ElectionConflictError(msg)
    election.is_cancelled = True
    election.status = ElectionStatus.CANCELLED.value
    await session.commit()
    logger.info("Cancelled election {}", election_id)
    return await require_election(session, election_id)


async def delete_election(session: AsyncSession, election_id: uuid.UUID) -> None:
    """Delete an election and its candidates, provided no vote references it.

    Raises:
        NotFoundError: If the election does not exist.
        ElectionConflictError: If votes have been cast.
    """
    election = await require_election(session, election_id)
    votes = await session.execute(select(func.count(Vote.id)).where(Vote.election_id == election_id))
    if votes.scalar_one() > 0:
        msg = "Cannot delete an election that has votes; cancel it instead"
        raise ElectionConflictError(msg)
    await session.delete(election)
    await session.commit()
    logger.info("Deleted election {}", election_id)


async def _page(
    session: AsyncSession,
    filters: list[ColumnElement[bool]],
    page: int,
    page_size: int,
    now: datetime,
) -> tuple[list[ElectionSummary], int]:
    total_result = await session.execute(select(func.count(Election.id)).where(*filters))
    total = total_result.scalar_one()

    offset = (page - 1) * page_size
    result = await session.execute(
        select(Election)
        .options(selectinload(Election.candidates))
        .where(*filters)
        .order_by(Election.start_date.desc())
        .offset(offset)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    elections = result.scalars().all()
    await persist_statuses(session, elections, now)
    return [build_summary(e, now) for e in elections], total


async def list_elections_for_voter(
    session: AsyncSession,
    voter_division: str,
    *,
    status: ElectionStatus | None = None,
    page: int = 1,
    page_size: int = 20,
    now: datetime | None = None,
) -> tuple[list[ElectionSummary], int]:
    """List elections visible to a voter: their division plus "All"-scoped ones.

    Args:
        session: Async database session.
        voter_division: The caller's division.
        status: Optional filter on the derived status.
        page: Page number (1-indexed).
        page_size: Results per page.
        now: Evaluation instant.

    Returns:
        Tuple of (election summaries, total count).
    """
    now = now or datetime.now(UTC)
    filters = [or_(Election.division == voter_division, Election.division == ALL_DIVISIONS)]
    if status is not None:
        filters.append(status_clause(status, now))
    return await _page(session, filters, page, page_size, now)


async def list_all_elections(
    session: AsyncSession,
    *,
    status: ElectionStatus | None = None,
    division: str | None = None,
    page: int = 1,
    page_size: int = 20,
    now: datetime | None = None,
) -> tuple[list[ElectionSummary], int]:
    """List every election (administrators)."""
    now = now or datetime.now(UTC)
    filters: list[ColumnElement[bool]] = []
    if status is not None:
        filters.append(status_clause(status, now))
    if division:
        filters.append(Election.division == division)
    return await _page(session, filters, page, page_size, now)


# --- Background lifecycle sweep ---


async def refresh_all_statuses(session: AsyncSession, now: datetime | None = None) -> int:
    """Persist the derived status of every election that can still change.

    Completed and cancelled elections are terminal and skipped.

    Args:
        session: Async database session.
        now: Evaluation instant.

    Returns:
        Number of elections whose cached status changed.
    """
    now = now or datetime.now(UTC)
    result = await session.execute(
        select(Election).where(
            Election.status.not_in([ElectionStatus.COMPLETED.value, ElectionStatus.CANCELLED.value])
        )
    )
    return await persist_statuses(session, result.scalars().all(), now)


async def status_refresh_loop(interval: int) -> None:
    """Background asyncio loop that persists derived election statuses.

    Args:
        interval: Seconds between sweeps.
    """
    from ballot_api.core.database import get_session_factory

    logger.info("Election status sweep started (interval={}s)", interval)

    while True:
        try:
            await asyncio.sleep(interval)
            factory = get_session_factory()
            async with factory() as session:
                count = await refresh_all_statuses(session)
                if count > 0:
                    logger.info("Updated status of {} election(s)", count)
        except asyncio.CancelledError:
            logger.info("Election status sweep cancelled")
            break
        except Exception:
            logger.exception("Election status sweep error")
