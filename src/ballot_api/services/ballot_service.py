"""Ballot submission pipeline.

A vote is recorded in a single transaction: the ``votes`` INSERT (guarded by
the ``uq_votes_voter_election`` unique constraint) and the two in-database
counter increments commit together or not at all. Concurrent submissions by
the same voter for the same election therefore yield exactly one vote; every
other attempt surfaces as ``DuplicateVoteError`` without touching counters.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.database import TRANSIENT_DB_ERRORS
from ballot_api.core.errors import (
    DuplicateVoteError,
    InvalidCandidateError,
    NotEligibleError,
    NotFoundError,
    TransientStoreError,
)
from ballot_api.core.logging import audit_logger
from ballot_api.lib.lifecycle import ElectionStatus, derive_status, division_matches
from ballot_api.models.election import Candidate, Election
from ballot_api.models.user import User
from ballot_api.models.vote import Vote
from ballot_api.schemas.ballot import VoteHistoryItem, VoteReceipt

_USER_AGENT_MAX = 500

_CLOSED_MESSAGES = {
    ElectionStatus.UPCOMING: "Voting has not started yet.",
    ElectionStatus.COMPLETED: "Voting has ended.",
    ElectionStatus.CANCELLED: "This election has been cancelled.",
}


@dataclass(frozen=True)
class OriginMeta:
    """Where a ballot came from, kept for audit."""

    ip_address: str
    user_agent: str

    @property
    def is_verified(self) -> bool:
        """A vote is verified when both its origin address and client are known."""
        return self.ip_address not in ("", "unknown") and bool(self.user_agent.strip())


def check_eligibility(election: Election, voter: User, now: datetime) -> None:
    """Raise NotEligibleError unless ``voter`` may vote in ``election`` at ``now``."""
    if not voter.is_active:
        raise NotEligibleError("Your account is not active.")
    status = derive_status(election, now)
    if status is not ElectionStatus.ACTIVE:
        raise NotEligibleError(_CLOSED_MESSAGES[status])
    if not division_matches(election.division, voter.division):
        raise NotEligibleError("This election is not open to your division.")


async def has_voted(session: AsyncSession, voter_id: uuid.UUID, election_id: uuid.UUID) -> bool:
    """Check whether a vote exists for (voter, election)."""
    result = await session.execute(
        select(Vote.id).where(Vote.voter_id == voter_id, Vote.election_id == election_id)
    )
    return result.first() is not None


async def submit_vote(
    session: AsyncSession,
    voter: User,
    election_id: uuid.UUID,
    candidate_id: uuid.UUID,
    origin: OriginMeta,
    now: datetime | None = None,
) -> VoteReceipt:
    """Validate a ballot and record it exactly once.

    Args:
        session: Async database session.
        voter: The authenticated voter.
        election_id: Target election.
        candidate_id: Chosen candidate.
        origin: Client address and user agent for the audit record.
        now: Evaluation instant (defaults to the current time).

    Returns:
        The vote receipt (vote id and timestamp).

    Raises:
        NotFoundError: The election does not exist.
        NotEligibleError: Wrong division, outside the voting window, or inactive account.
        InvalidCandidateError: Candidate missing, inactive, or from another election.
        DuplicateVoteError: A vote for (voter, election) already exists.
        TransientStoreError: The store failed; nothing was recorded.
    """
    now = now or datetime.now(UTC)
    # Rollback expires loaded instances; keep plain values for the error paths.
    voter_id = voter.id

    try:
        election = await session.get(Election, election_id)
        if election is None:
            raise NotFoundError()
        check_eligibility(election, voter, now)
        is_secret = election.is_secret_ballot

        candidate = await session.get(Candidate, candidate_id)
        if candidate is None or candidate.election_id != election_id or not candidate.is_active:
            raise InvalidCandidateError("Invalid candidate for this election.")

        vote = Vote(
            voter_id=voter_id,
            election_id=election_id,
            candidate_id=candidate_id,
            cast_at=now,
            ip_address=origin.ip_address[:45],
            user_agent=origin.user_agent[:_USER_AGENT_MAX],
            is_verified=origin.is_verified,
        )
        session.add(vote)
        await session.flush()

        await session.execute(
            update(Candidate)
            .where(Candidate.id == candidate_id)
            .values(vote_count=Candidate.vote_count + 1)
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            update(Election)
            .where(Election.id == election_id)
            .values(total_votes=Election.total_votes + 1)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if await has_voted(session, voter_id, election_id):
            logger.warning("Duplicate vote rejected: voter={} election={}", voter_id, election_id)
            raise DuplicateVoteError() from e
        # Candidate deleted between the check and the insert.
        raise InvalidCandidateError("Invalid candidate for this election.") from e
    except TRANSIENT_DB_ERRORS as e:
        await session.rollback()
        logger.exception("Ballot store failure: voter={} election={}", voter_id, election_id)
        raise TransientStoreError() from e

    logger.info("Vote {} accepted for election {}", vote.id, election_id)
    audit = audit_logger.bind(
        event="vote_cast",
        vote_id=str(vote.id),
        election_id=str(election_id),
        voter_id=str(voter_id),
        ip_address=vote.ip_address,
        verified=vote.is_verified,
    )
    if not is_secret:
        audit = audit.bind(candidate_id=str(candidate_id))
    audit.info("vote accepted")

    return VoteReceipt(vote_id=vote.id, election_id=election_id, timestamp=now)


async def list_votes_for_voter(session: AsyncSession, voter_id: uuid.UUID) -> list[VoteHistoryItem]:
    """Return a voter's own voting history, newest first."""
    result = await session.execute(
        select(Vote, Election, Candidate)
        .join(Election, Vote.election_id == Election.id)
        .join(Candidate, Vote.candidate_id == Candidate.id)
        .where(Vote.voter_id == voter_id)
        .order_by(Vote.cast_at.desc())
    )
    now = datetime.now(UTC)
    return [
        VoteHistoryItem(
            vote_id=vote.id,
            election_id=election.id,
            election_title=election.title,
            election_status=derive_status(election, now).value,
            candidate_name=candidate.full_name,
            candidate_position=candidate.position,
            cast_at=vote.cast_at,
        )
        for vote, election, candidate in result.all()
    ]
