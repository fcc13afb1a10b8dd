"""Pydantic v2 schemas for vote submission and voting history."""

import uuid
from datetime import datetime

from pydantic import BaseModel


class VoteRequest(BaseModel):
    """Ballot choice submitted by a voter."""

    candidate_id: uuid.UUID


class VoteReceipt(BaseModel):
    """Proof of a recorded vote. Never names the chosen candidate."""

    vote_id: uuid.UUID
    election_id: uuid.UUID
    timestamp: datetime
    message: str = "Vote cast successfully"


class VoteHistoryItem(BaseModel):
    """One entry of a voter's own voting history."""

    vote_id: uuid.UUID
    election_id: uuid.UUID
    election_title: str
    election_status: str
    candidate_name: str
    candidate_position: str
    cast_at: datetime


class VoteHistoryResponse(BaseModel):
    """A voter's history, newest first."""

    items: list[VoteHistoryItem]
    total: int
