"""Pydantic v2 schemas for the administrative dashboard."""

from pydantic import BaseModel

from ballot_api.schemas.election import ElectionSummary


class DashboardTotals(BaseModel):
    """Row counts across the store."""

    users: int
    elections: int
    candidates: int
    votes: int


class DivisionCount(BaseModel):
    """Registered voters in one division."""

    division: str
    count: int


class DashboardResponse(BaseModel):
    """Administrative overview."""

    totals: DashboardTotals
    recent_elections: list[ElectionSummary]
    active_elections: list[ElectionSummary]
    users_by_division: list[DivisionCount]
