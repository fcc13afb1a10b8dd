"""Ballot error taxonomy.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API renders it with. Only ``TransientStoreError`` is retry-eligible; the rest
require the client to change its request.
"""


class BallotError(Exception):
    """Base class for client-visible ballot failures."""

    code: str = "ballot_error"
    status_code: int = 400
    retryable: bool = False
    default_message: str = "Ballot request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(BallotError):
    """Election, candidate, or voter does not exist."""

    code = "not_found"
    status_code = 404
    default_message = "Election not found."


class NotEligibleError(BallotError):
    """Voter may not vote: wrong division, outside the voting window, or not active."""

    code = "not_eligible"
    status_code = 403
    default_message = "You are not eligible to vote in this election."


class InvalidCandidateError(BallotError):
    """Candidate is inactive or belongs to a different election."""

    code = "invalid_candidate"
    status_code = 400
    default_message = "Invalid candidate."


class DuplicateVoteError(BallotError):
    """A vote already exists for this (voter, election) pair."""

    code = "duplicate_vote"
    status_code = 409
    default_message = "You have already voted in this election."


class ResultsNotAvailableError(BallotError):
    """Results are only published once an election is completed."""

    code = "results_not_available"
    status_code = 400
    default_message = "Election results are not available yet."


class TransientStoreError(BallotError):
    """The store was unreachable or timed out; nothing was applied."""

    code = "store_unavailable"
    status_code = 503
    retryable = True
    default_message = "The ballot store is temporarily unavailable. Please retry."
