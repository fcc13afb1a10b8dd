"""Unit tests for vote share, ranking, and counter drift detection."""

from dataclasses import dataclass
from decimal import Decimal

from ballot_api.lib.tally import (
    ZERO_SHARE,
    CounterDrift,
    counters_consistent,
    find_counter_drift,
    rank_by_votes,
    vote_share,
)


@dataclass
class _Candidate:
    name: str
    vote_count: int
    ballot_order: int


class TestVoteShare:
    """Tests for vote_share."""

    def test_seven_three_zero(self) -> None:
        assert [vote_share(n, 10) for n in (7, 3, 0)] == [Decimal("70.00"), Decimal("30.00"), Decimal("0.00")]

    def test_zero_total_yields_zero(self) -> None:
        assert vote_share(0, 0) == ZERO_SHARE

    def test_rounds_half_up(self) -> None:
        # 12.5%, 33.33..%, 66.66..%
        assert vote_share(1, 8) == Decimal("12.50")
        assert vote_share(1, 3) == Decimal("33.33")
        assert vote_share(2, 3) == Decimal("66.67")

    def test_half_cent_rounds_up(self) -> None:
        # 1/800 = 0.125%
        assert vote_share(1, 800) == Decimal("0.13")

    def test_two_decimal_places(self) -> None:
        assert vote_share(1, 7).as_tuple().exponent == -2


class TestRankByVotes:
    """Tests for rank_by_votes."""

    def test_descending_vote_count(self) -> None:
        ranked = rank_by_votes([_Candidate("a", 3, 1), _Candidate("b", 7, 2), _Candidate("c", 0, 3)])
        assert [c.name for c in ranked] == ["b", "a", "c"]

    def test_ties_keep_ballot_order(self) -> None:
        ranked = rank_by_votes([_Candidate("late", 4, 3), _Candidate("early", 4, 1), _Candidate("mid", 4, 2)])
        assert [c.name for c in ranked] == ["early", "mid", "late"]


class TestCounterDrift:
    """Tests for find_counter_drift and counters_consistent."""

    def test_no_drift(self) -> None:
        assert find_counter_drift({"a": 2, "b": 1}, {"a": 2, "b": 1}) == []

    def test_missing_from_log_counts_as_zero(self) -> None:
        assert find_counter_drift({"a": 2, "b": 1}, {"a": 2}) == [CounterDrift(key="b", stored=1, counted=0)]

    def test_missing_counter_reported_with_zero_stored(self) -> None:
        assert find_counter_drift({"a": 0}, {"a": 0, "b": 3}) == [CounterDrift(key="b", stored=0, counted=3)]

    def test_counters_consistent(self) -> None:
        assert counters_consistent([7, 3, 0], 10)
        assert not counters_consistent([7, 3], 11)
        assert counters_consistent([], 0)
