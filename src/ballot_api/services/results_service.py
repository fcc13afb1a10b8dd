"""Results aggregation and counter reconciliation.

Public results are published only once an election is completed. The stored
counters are cross-checked against the vote log before every computation and
rewritten from it when they disagree.
"""

import uuid
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.errors import NotFoundError, ResultsNotAvailableError
from ballot_api.lib.lifecycle import ElectionStatus, derive_status
from ballot_api.lib.tally import counters_consistent, find_counter_drift, rank_by_votes, vote_share
from ballot_api.models.election import Candidate, Election
from ballot_api.models.user import User
from ballot_api.models.vote import Vote
from ballot_api.schemas.results import (
    AdminResultsResponse,
    CandidateResult,
    CounterCorrection,
    ElectionResultsResponse,
    ReconcileReport,
    VoteAuditEntry,
)
from ballot_api.services.election_service import get_election_by_id, persist_statuses


async def reconcile_counters(session: AsyncSession, election_id: uuid.UUID) -> ReconcileReport:
    """Recount an election's counters from the vote log and correct any drift.

    The election row is locked for the recount, so increments from votes that
    commit afterwards apply on top of the corrected values.

    Args:
        session: Async database session.
        election_id: The election to reconcile.

    Returns:
        A report listing every corrected counter.

    Raises:
        NotFoundError: If the election does not exist.
    """
    locked = await session.execute(
        select(Election.total_votes).where(Election.id == election_id).with_for_update()
    )
    stored_total = locked.scalar_one_or_none()
    if stored_total is None:
        raise NotFoundError()

    stored_rows = await session.execute(
        select(Candidate.id, Candidate.vote_count).where(Candidate.election_id == election_id)
    )
    stored = {row.id: row.vote_count for row in stored_rows}

    counted_rows = await session.execute(
        select(Vote.candidate_id, func.count(Vote.id)).where(Vote.election_id == election_id).group_by(Vote.candidate_id)
    )
    counted = {candidate_id: count for candidate_id, count in counted_rows.all()}
    counted_total = sum(counted.values())

    corrections = []
    for drift in find_counter_drift(stored, counted):
        await session.execute(
            update(Candidate)
            .where(Candidate.id == drift.key)
            .values(vote_count=drift.counted)
            .execution_options(synchronize_session=False)
        )
        corrections.append(CounterCorrection(target=str(drift.key), stored=drift.stored, counted=drift.counted))
    if stored_total != counted_total:
        await session.execute(
            update(Election)
            .where(Election.id == election_id)
            .values(total_votes=counted_total)
            .execution_options(synchronize_session=False)
        )
        corrections.append(CounterCorrection(target="election", stored=stored_total, counted=counted_total))
    await session.commit()

    if corrections:
        logger.warning("Corrected {} drifted counter(s) for election {}", len(corrections), election_id)
    return ReconcileReport(election_id=election_id, total_votes=counted_total, corrections=corrections)


async def _load_consistent(session: AsyncSession, election_id: uuid.UUID) -> Election:
    """Load an election with candidates, reconciling first if its counters disagree."""
    election = await get_election_by_id(session, election_id)
    if election is None:
        raise NotFoundError()
    active_counts = [c.vote_count for c in election.candidates if c.is_active]
    if not counters_consistent(active_counts, election.total_votes):
        logger.warning(
            "Counter drift detected for election {}: candidates={} total={}",
            election_id,
            sum(active_counts),
            election.total_votes,
        )
        await reconcile_counters(session, election_id)
        election = await get_election_by_id(session, election_id)
        if election is None:
            raise NotFoundError()
    return election


def _candidate_results(election: Election) -> list[CandidateResult]:
    ranked = rank_by_votes(c for c in election.candidates if c.is_active)
    return [
        CandidateResult(
            candidate_id=c.id,
            full_name=c.full_name,
            membership_id=c.membership_id,
            division=c.division,
            position=c.position,
            ballot_order=c.ballot_order,
            vote_count=c.vote_count,
            percentage=vote_share(c.vote_count, election.total_votes),
        )
        for c in ranked
    ]


async def compute_results(
    session: AsyncSession,
    election_id: uuid.UUID,
    now: datetime | None = None,
) -> ElectionResultsResponse:
    """Compute ranked results for a completed election.

    Args:
        session: Async database session.
        election_id: The election.
        now: Evaluation instant.

    Returns:
        Active candidates ordered by descending vote count (ties by ballot
        order) with two-place percentage shares.

    Raises:
        NotFoundError: If the election does not exist.
        ResultsNotAvailableError: Unless the election is completed.
    """
    now = now or datetime.now(UTC)
    election = await get_election_by_id(session, election_id)
    if election is None:
        raise NotFoundError()
    await persist_statuses(session, [election], now)
    status = derive_status(election, now)
    if status is not ElectionStatus.COMPLETED:
        raise ResultsNotAvailableError()

    election = await _load_consistent(session, election_id)
    return ElectionResultsResponse(
        election_id=election.id,
        title=election.title,
        status=status.value,
        total_votes=election.total_votes,
        candidates=_candidate_results(election),
        computed_at=now,
    )


async def compute_admin_results(
    session: AsyncSession,
    election_id: uuid.UUID,
    now: datetime | None = None,
) -> AdminResultsResponse:
    """Results at any status plus the vote audit trail.

    The chosen candidate appears in the audit trail only for open ballots.
    """
    now = now or datetime.now(UTC)
    election = await _load_consistent(session, election_id)
    await persist_statuses(session, [election], now)

    rows = await session.execute(
        select(Vote, User, Candidate)
        .join(User, Vote.voter_id == User.id)
        .join(Candidate, Vote.candidate_id == Candidate.id)
        .where(Vote.election_id == election_id)
        .order_by(Vote.cast_at)
    )
    reveal = not election.is_secret_ballot
    votes = [
        VoteAuditEntry(
            vote_id=vote.id,
            voter_name=voter.full_name,
            voter_membership_id=voter.membership_id,
            voter_division=voter.division,
            cast_at=vote.cast_at,
            ip_address=vote.ip_address,
            is_verified=vote.is_verified,
            candidate_id=candidate.id if reveal else None,
            candidate_name=candidate.full_name if reveal else None,
        )
        for vote, voter, candidate in rows.all()
    ]

    return AdminResultsResponse(
        election_id=election.id,
        title=election.title,
        status=derive_status(election, now).value,
        total_votes=election.total_votes,
        candidates=_candidate_results(election),
        computed_at=now,
        is_secret_ballot=election.is_secret_ballot,
        votes=votes,
    )
