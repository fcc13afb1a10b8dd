"""Election lifecycle library: status derivation and eligibility gating.

Public API:
    - derive_status: Pure status function of (now, start, end, cancelled)
    - can_vote: Eligibility of a voter division at an instant
    - ElectionStatus / Division: Enumerations shared by models and schemas
"""

from ballot_api.lib.lifecycle.status import (
    ALL_DIVISIONS,
    ELECTION_SCOPES,
    Division,
    ElectionStatus,
    ElectionWindow,
    as_utc,
    can_vote,
    derive_status,
    division_matches,
)

__all__ = [
    "ALL_DIVISIONS",
    "ELECTION_SCOPES",
    "Division",
    "ElectionStatus",
    "ElectionWindow",
    "as_utc",
    "can_vote",
    "derive_status",
    "division_matches",
]
