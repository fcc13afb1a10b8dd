"""Pydantic v2 schemas for elections and candidates.

Datetimes are normalized to aware UTC on the way in; ``status`` on every
response is the freshly derived lifecycle status, not the cached column.
"""

import uuid
from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from ballot_api.lib.lifecycle import ELECTION_SCOPES, Division, as_utc
from ballot_api.schemas.common import PaginationMeta

# --- Request schemas ---


def _check_scope(value: str) -> str:
    if value not in ELECTION_SCOPES:
        msg = f"division must be one of: {', '.join(ELECTION_SCOPES)}"
        raise ValueError(msg)
    return value


class ElectionCreateRequest(BaseModel):
    """Request body for creating an election."""

    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    start_date: datetime
    end_date: datetime
    division: str = Field(description="A division name or 'All'")
    max_candidates: int = Field(default=10, ge=2, le=20)
    is_secret_ballot: bool = True

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("division")
    @classmethod
    def validate_division(cls, v: str) -> str:
        return _check_scope(v)

    @model_validator(mode="after")
    def validate_window(self) -> Self:
        if self.end_date <= self.start_date:
            msg = "End date must be after start date"
            raise ValueError(msg)
        return self


class ElectionUpdateRequest(BaseModel):
    """Partial election update. Date order is re-checked against stored values by the service."""

    title: str | None = Field(default=None, min_length=5, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=2000)
    start_date: datetime | None = None
    end_date: datetime | None = None
    division: str | None = None
    max_candidates: int | None = Field(default=None, ge=2, le=20)
    is_secret_ballot: bool | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None

    @field_validator("division")
    @classmethod
    def validate_division(cls, v: str | None) -> str | None:
        return _check_scope(v) if v is not None else None


class CandidateCreateRequest(BaseModel):
    """Request body for adding a candidate to an election."""

    full_name: str = Field(min_length=2, max_length=100)
    membership_id: str = Field(min_length=3, max_length=20)
    division: Division
    position: str = Field(min_length=2, max_length=100)
    manifesto: str = Field(min_length=50, max_length=2000)
    experience: str = Field(min_length=10, max_length=500)
    photo_url: str | None = Field(default=None, max_length=500)

    @field_validator("membership_id")
    @classmethod
    def upper_case(cls, v: str) -> str:
        return v.strip().upper()


class CandidateUpdateRequest(BaseModel):
    """Partial update of a candidate's descriptive fields."""

    full_name: str | None = Field(default=None, min_length=2, max_length=100)
    position: str | None = Field(default=None, min_length=2, max_length=100)
    manifesto: str | None = Field(default=None, min_length=50, max_length=2000)
    experience: str | None = Field(default=None, min_length=10, max_length=500)
    photo_url: str | None = Field(default=None, max_length=500)


# --- Response schemas ---


class ElectionSummary(BaseModel):
    """Election summary for list endpoints."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    status: str
    division: str
    max_candidates: int
    total_votes: int
    is_secret_ballot: bool
    candidate_count: int = 0


class ElectionDetailResponse(ElectionSummary):
    """Single election with the caller's voting state."""

    has_voted: bool = False
    can_vote: bool = False
    created_at: datetime
    updated_at: datetime


class PaginatedElectionListResponse(BaseModel):
    """Paginated election list."""

    items: list[ElectionSummary]
    pagination: PaginationMeta


class CandidateResponse(BaseModel):
    """A candidate as shown on the ballot."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    election_id: uuid.UUID
    full_name: str
    membership_id: str
    division: str
    position: str
    manifesto: str
    experience: str
    photo_url: str | None = None
    ballot_order: int
    is_active: bool


class AdminCandidateResponse(CandidateResponse):
    """Candidate with its running counter, for administrators."""

    vote_count: int
