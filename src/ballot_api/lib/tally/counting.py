"""Vote share, ranking, and counter drift detection.

Pure functions over stored counters; no database access.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, TypeVar

_TWO_PLACES = Decimal("0.01")
ZERO_SHARE = Decimal("0.00")


class Ranked(Protocol):
    """A candidate-like object that can be ranked."""

    vote_count: int
    ballot_order: int


T = TypeVar("T", bound=Ranked)


def vote_share(vote_count: int, total_votes: int) -> Decimal:
    """Return ``vote_count / total_votes * 100`` rounded half-up to two places.

    A zero (or negative) total yields ``0.00`` instead of dividing by zero.
    """
    if total_votes <= 0:
        return ZERO_SHARE
    share = Decimal(vote_count) * 100 / Decimal(total_votes)
    return share.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def rank_by_votes(candidates: Iterable[T]) -> list[T]:
    """Order candidates by descending vote count.

    Ties keep ballot order (the order candidates were added to the election).
    """
    return sorted(candidates, key=lambda c: (-c.vote_count, c.ballot_order))


@dataclass(frozen=True)
class CounterDrift:
    """A stored counter that disagrees with the vote log."""

    key: object
    stored: int
    counted: int


def find_counter_drift(stored: Mapping[object, int], counted: Mapping[object, int]) -> list[CounterDrift]:
    """Compare stored per-key counters against counts recomputed from the vote log.

    Keys missing from ``counted`` count as zero; keys missing from ``stored``
    are reported with a stored value of zero.

    Args:
        stored: Counter values as persisted.
        counted: Authoritative counts from the vote log.

    Returns:
        One entry per disagreeing key.
    """
    drift = []
    for key in list(stored) + [k for k in counted if k not in stored]:
        stored_value = stored.get(key, 0)
        counted_value = counted.get(key, 0)
        if stored_value != counted_value:
            drift.append(CounterDrift(key=key, stored=stored_value, counted=counted_value))
    return drift


def counters_consistent(candidate_counts: Sequence[int], total_votes: int) -> bool:
    """Check the invariant ``sum(candidate counters) == election total``."""
    return sum(candidate_counts) == total_votes
