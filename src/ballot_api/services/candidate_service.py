"""Candidate service: ballot composition for an election."""

import uuid
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.errors import NotFoundError
from ballot_api.lib.lifecycle import ElectionStatus, derive_status, division_matches
from ballot_api.models.election import Candidate
from ballot_api.models.vote import Vote
from ballot_api.schemas.election import CandidateCreateRequest, CandidateUpdateRequest
from ballot_api.services.election_service import ElectionConflictError, require_election


async def add_candidate(
    session: AsyncSession,
    election_id: uuid.UUID,
    request: CandidateCreateRequest,
    now: datetime | None = None,
) -> Candidate:
    """Add a candidate to an election that has not started.

    Ballot order is assigned sequentially in insertion order.

    Args:
        session: Async database session.
        election_id: Target election.
        request: Candidate data.
        now: Evaluation instant.

    Returns:
        The created Candidate.

    Raises:
        NotFoundError: If the election does not exist.
        ElectionConflictError: If the election has started, is full, or the
            member already stands in it.
        ValueError: If the candidate's division is outside the election's scope.
    """
    now = now or datetime.now(UTC)
    election = await require_election(session, election_id)

    if derive_status(election, now) is not ElectionStatus.UPCOMING:
        msg = "Candidates can only be added before the election starts"
        raise ElectionConflictError(msg)
    if not division_matches(election.division, request.division.value):
        msg = f"Candidate division must be {election.division}"
        raise ValueError(msg)
    if sum(1 for c in election.candidates if c.is_active) >= election.max_candidates:
        msg = f"Election already has the maximum of {election.max_candidates} candidates"
        raise ElectionConflictError(msg)
    if any(c.membership_id == request.membership_id for c in election.candidates):
        msg = "This member is already a candidate in the election"
        raise ElectionConflictError(msg)

    next_order = max((c.ballot_order for c in election.candidates), default=0) + 1
    candidate = Candidate(
        election_id=election.id,
        full_name=request.full_name,
        membership_id=request.membership_id,
        division=request.division.value,
        position=request.position,
        manifesto=request.manifesto,
        experience=request.experience,
        photo_url=request.photo_url,
        ballot_order=next_order,
        is_active=True,
        vote_count=0,
    )
    session.add(candidate)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        msg = "Candidate conflicts with an existing ballot entry; retry"
        raise ElectionConflictError(msg) from e
    logger.info("Added candidate {} to election {} at position {}", candidate.id, election_id, next_order)
    return candidate


async def get_candidate(session: AsyncSession, candidate_id: uuid.UUID) -> Candidate:
    """Get a candidate by ID.

    Raises:
        NotFoundError: If the candidate does not exist.
    """
    candidate = await session.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFoundError("Candidate not found.")
    return candidate


async def list_active_candidates(session: AsyncSession, election_id: uuid.UUID) -> list[Candidate]:
    """Return an election's active candidates in ballot order.

    Raises:
        NotFoundError: If the election does not exist.
    """
    election = await require_election(session, election_id)
    return [c for c in election.candidates if c.is_active]


async def update_candidate(
    session: AsyncSession,
    candidate_id: uuid.UUID,
    request: CandidateUpdateRequest,
) -> Candidate:
    """Edit a candidate's descriptive fields."""
    candidate = await get_candidate(session, candidate_id)
    for field, value in request.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(candidate, field, value)
    await session.commit()
    await session.refresh(candidate)
    return candidate


async def deactivate_candidate(session: AsyncSession, candidate_id: uuid.UUID) -> Candidate:
    """Withdraw a candidate from the ballot (soft delete).

    Refused once the candidate has received votes, so that active candidate
    counters keep summing to the election total.

    Raises:
        NotFoundError: If the candidate does not exist.
        ElectionConflictError: If votes reference the candidate.
    """
    candidate = await get_candidate(session, candidate_id)
    votes = await session.execute(select(func.count(Vote.id)).where(Vote.candidate_id == candidate_id))
    if votes.scalar_one() > 0 or candidate.vote_count > 0:
        msg = "Cannot remove a candidate who has received votes"
        raise ElectionConflictError(msg)
    candidate.is_active = False
    await session.commit()
    await session.refresh(candidate)
    logger.info("Deactivated candidate {}", candidate_id)
    return candidate
