"""Election status derivation and voter eligibility.

Status is a pure function of ``(now, start_date, end_date, is_cancelled)``.
The persisted ``status`` column is a cache of this value and is never trusted
for gating decisions.
"""

import enum
from datetime import UTC, datetime
from typing import Protocol


class ElectionStatus(enum.StrEnum):
    """Temporal status of an election."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Division(enum.StrEnum):
    """Organizational unit of the union membership."""

    IT = "IT"
    FINANCE = "Finance"
    HR = "HR"
    OPERATIONS = "Operations"
    MARKETING = "Marketing"
    SALES = "Sales"
    ENGINEERING = "Engineering"
    SUPPORT = "Support"


ALL_DIVISIONS = "All"
"""Election scope sentinel: open to members of every division."""

ELECTION_SCOPES: tuple[str, ...] = (*(d.value for d in Division), ALL_DIVISIONS)


class ElectionWindow(Protocol):
    """The attributes status derivation reads from an election."""

    start_date: datetime
    end_date: datetime
    is_cancelled: bool
    division: str


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to an aware UTC instant.

    Naive values are taken to be UTC (some drivers drop the offset on read).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def derive_status(election: ElectionWindow, now: datetime) -> ElectionStatus:
    """Derive an election's status at instant ``now``.

    Cancellation is terminal and overrides the time-based rules. The voting
    window is closed on both ends: ``start_date <= now <= end_date`` is active.

    Args:
        election: Election-like object with date bounds and cancellation flag.
        now: The instant to evaluate at.

    Returns:
        The derived status.
    """
    if election.is_cancelled:
        return ElectionStatus.CANCELLED
    now = as_utc(now)
    if now < as_utc(election.start_date):
        return ElectionStatus.UPCOMING
    if now <= as_utc(election.end_date):
        return ElectionStatus.ACTIVE
    return ElectionStatus.COMPLETED


def division_matches(election_division: str, voter_division: str) -> bool:
    """Check whether an election's scope admits a voter's division."""
    return election_division == ALL_DIVISIONS or election_division == voter_division


def can_vote(election: ElectionWindow, voter_division: str, now: datetime) -> bool:
    """Check whether a member of ``voter_division`` may vote at ``now``.

    Args:
        election: Election-like object.
        voter_division: The voter's division.
        now: The instant to evaluate at.

    Returns:
        True iff the election is active at ``now`` and scoped to the voter's
        division or to all divisions.
    """
    return derive_status(election, now) is ElectionStatus.ACTIVE and division_matches(
        election.division, voter_division
    )
