"""Pydantic v2 schemas for election results, audit trail, and reconciliation."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CandidateResult(BaseModel):
    """A candidate's final tally."""

    candidate_id: uuid.UUID
    full_name: str
    membership_id: str
    division: str
    position: str
    ballot_order: int
    vote_count: int
    percentage: Decimal = Field(description="Share of total votes, two decimal places")


class ElectionResultsResponse(BaseModel):
    """Ranked results of an election."""

    election_id: uuid.UUID
    title: str
    status: str
    total_votes: int
    candidates: list[CandidateResult]
    computed_at: datetime


class VoteAuditEntry(BaseModel):
    """One vote in the administrative audit trail.

    ``candidate_id``/``candidate_name`` are omitted for secret ballots.
    """

    vote_id: uuid.UUID
    voter_name: str
    voter_membership_id: str
    voter_division: str
    cast_at: datetime
    ip_address: str
    is_verified: bool
    candidate_id: uuid.UUID | None = None
    candidate_name: str | None = None


class AdminResultsResponse(ElectionResultsResponse):
    """Results at any status plus the vote audit trail."""

    is_secret_ballot: bool
    votes: list[VoteAuditEntry]


class CounterCorrection(BaseModel):
    """A counter that was rewritten from the vote log."""

    target: str = Field(description="'election' or a candidate id")
    stored: int
    counted: int


class ReconcileReport(BaseModel):
    """Outcome of recounting an election's counters."""

    election_id: uuid.UUID
    total_votes: int
    corrections: list[CounterCorrection]

    @property
    def drifted(self) -> bool:
        return bool(self.corrections)
