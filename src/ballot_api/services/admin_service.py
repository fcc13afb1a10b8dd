"""Administrative dashboard aggregation."""

from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ballot_api.lib.lifecycle import ElectionStatus
from ballot_api.models.election import Candidate, Election
from ballot_api.models.user import User
from ballot_api.models.vote import Vote
from ballot_api.schemas.admin import DashboardResponse, DashboardTotals, DivisionCount
from ballot_api.services.election_service import build_summary, persist_statuses, status_clause

RECENT_ELECTIONS_LIMIT = 5


async def _count(session: AsyncSession, column: object) -> int:
    result = await session.execute(select(func.count(column)))
    return result.scalar_one()


async def get_dashboard(session: AsyncSession, now: datetime | None = None) -> DashboardResponse:
    """Assemble store totals, recent and active elections, and voters per division."""
    now = now or datetime.now(UTC)
    totals = DashboardTotals(
        users=await _count(session, User.id),
        elections=await _count(session, Election.id),
        candidates=await _count(session, Candidate.id),
        votes=await _count(session, Vote.id),
    )

    recent = await session.execute(
        select(Election)
        .options(selectinload(Election.candidates))
        .order_by(Election.created_at.desc())
        .limit(RECENT_ELECTIONS_LIMIT)
        .execution_options(populate_existing=True)
    )
    active = await session.execute(
        select(Election)
        .options(selectinload(Election.candidates))
        .where(status_clause(ElectionStatus.ACTIVE, now))
        .order_by(Election.end_date)
        .execution_options(populate_existing=True)
    )
    by_division = await session.execute(
        select(User.division, func.count(User.id))
        .where(User.role == "voter")
        .group_by(User.division)
        .order_by(User.division)
    )

    recent_elections = recent.scalars().all()
    active_elections = active.scalars().all()
    await persist_statuses(session, [*recent_elections, *active_elections], now)

    return DashboardResponse(
        totals=totals,
        recent_elections=[build_summary(e, now) for e in recent_elections],
        active_elections=[build_summary(e, now) for e in active_elections],
        users_by_division=[DivisionCount(division=d, count=n) for d, n in by_division.all()],
    )
