"""Tally library: vote share arithmetic, ranking, and counter reconciliation checks.

Public API:
    - vote_share: Two-place percentage with a zero-total guard
    - rank_by_votes: Descending vote count, ballot order tie-break
    - find_counter_drift: Stored counters vs. vote-log recount
    - counters_consistent: Candidate counters sum to the election total
"""

from ballot_api.lib.tally.counting import (
    ZERO_SHARE,
    CounterDrift,
    counters_consistent,
    find_counter_drift,
    rank_by_votes,
    vote_share,
)

__all__ = [
    "ZERO_SHARE",
    "CounterDrift",
    "counters_consistent",
    "find_counter_drift",
    "rank_by_votes",
    "vote_share",
]
