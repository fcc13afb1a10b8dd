"""Administrative endpoints (admin role only).

Dashboard, member management, election and candidate management, audited
results, and counter reconciliation.
"""

import uuid
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.dependencies import get_async_session, require_role
from ballot_api.lib.lifecycle import Division, ElectionStatus
from ballot_api.models.election import Election
from ballot_api.models.user import User
from ballot_api.schemas.admin import DashboardResponse
from ballot_api.schemas.auth import PaginatedUserListResponse, UserResponse, UserStatusUpdateRequest
from ballot_api.schemas.common import PaginationParams, build_pagination
from ballot_api.schemas.election import (
    AdminCandidateResponse,
    CandidateCreateRequest,
    CandidateUpdateRequest,
    ElectionCreateRequest,
    ElectionDetailResponse,
    ElectionUpdateRequest,
    PaginatedElectionListResponse,
)
from ballot_api.schemas.results import AdminResultsResponse, ReconcileReport
from ballot_api.services import (
    admin_service,
    auth_service,
    candidate_service,
    election_service,
    results_service,
)
from ballot_api.services.election_service import ElectionConflictError

admin_router = APIRouter(prefix="/admin", tags=["admin"])

AdminUser = Annotated[User, Depends(require_role("admin"))]
Session = Annotated[AsyncSession, Depends(get_async_session)]


def _now() -> datetime:
    return datetime.now(UTC)


def _conflict(exc: ElectionConflictError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


async def _fresh_detail(session: AsyncSession, election: Election) -> ElectionDetailResponse:
    now = _now()
    await election_service.persist_statuses(session, [election], now)
    return election_service.build_detail_response(election, now)


@admin_router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(_admin: AdminUser, session: Session) -> DashboardResponse:
    """Store totals, recent and active elections, and voters per division."""
    return await admin_service.get_dashboard(session)


# --- Members ---


@admin_router.get("/users", response_model=PaginatedUserListResponse)
async def list_users(
    _admin: AdminUser,
    session: Session,
    pagination: Annotated[PaginationParams, Depends()],
    search: Annotated[str | None, Query(max_length=100)] = None,
    division: Division | None = None,
) -> PaginatedUserListResponse:
    """List members with optional search and division filter."""
    users, total = await auth_service.list_users(
        session,
        search=search,
        division=division.value if division else None,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedUserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        pagination=build_pagination(total, pagination.page, pagination.page_size),
    )


@admin_router.patch("/users/{user_id}/status", response_model=UserResponse)
async def set_user_status(
    user_id: uuid.UUID,
    request: UserStatusUpdateRequest,
    admin: AdminUser,
    session: Session,
) -> User:
    """Activate or deactivate a member account."""
    return await auth_service.set_user_active(session, user_id, request.is_active, admin)


# --- Elections ---


@admin_router.get("/elections", response_model=PaginatedElectionListResponse)
async def list_elections(
    _admin: AdminUser,
    session: Session,
    pagination: Annotated[PaginationParams, Depends()],
    status: ElectionStatus | None = None,
    division: Annotated[str | None, Query(max_length=20)] = None,
) -> PaginatedElectionListResponse:
    """List every election regardless of division."""
    items, total = await election_service.list_all_elections(
        session,
        status=status,
        division=division,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedElectionListResponse(
        items=items,
        pagination=build_pagination(total, pagination.page, pagination.page_size),
    )


@admin_router.post("/elections", response_model=ElectionDetailResponse, status_code=201)
async def create_election(
    request: ElectionCreateRequest,
    admin: AdminUser,
    session: Session,
) -> ElectionDetailResponse:
    """Create an election."""
    election = await election_service.create_election(session, request, admin)
    return await _fresh_detail(session, election)


@admin_router.patch("/elections/{election_id}", response_model=ElectionDetailResponse)
async def update_election(
    election_id: uuid.UUID,
    request: ElectionUpdateRequest,
    _admin: AdminUser,
    session: Session,
) -> ElectionDetailResponse:
    """Partially update an election that has not finished."""
    try:
        election = await election_service.update_election(session, election_id, request)
    except ElectionConflictError as e:
        raise _conflict(e) from e
    return await _fresh_detail(session, election)


@admin_router.post("/elections/{election_id}/cancel", response_model=ElectionDetailResponse)
async def cancel_election(
    election_id: uuid.UUID,
    _admin: AdminUser,
    session: Session,
) -> ElectionDetailResponse:
    """Cancel an election (terminal)."""
    try:
        election = await election_service.cancel_election(session, election_id)
    except ElectionConflictError as e:
        raise _conflict(e) from e
    return await _fresh_detail(session, election)


@admin_router.delete("/elections/{election_id}", status_code=204)
async def delete_election(
    election_id: uuid.UUID,
    _admin: AdminUser,
    session: Session,
) -> Response:
    """Delete an election that has no votes."""
    try:
        await election_service.delete_election(session, election_id)
    except ElectionConflictError as e:
        raise _conflict(e) from e
    return Response(status_code=204)


@admin_router.get("/elections/{election_id}/results", response_model=AdminResultsResponse)
async def election_results(
    election_id: uuid.UUID,
    _admin: AdminUser,
    session: Session,
) -> AdminResultsResponse:
    """Results at any status with the vote audit trail."""
    return await results_service.compute_admin_results(session, election_id)


@admin_router.post("/elections/{election_id}/reconcile", response_model=ReconcileReport)
async def reconcile(
    election_id: uuid.UUID,
    _admin: AdminUser,
    session: Session,
) -> ReconcileReport:
    """Recount counters from the vote log and correct drift."""
    return await results_service.reconcile_counters(session, election_id)


# --- Candidates ---


@admin_router.get("/elections/{election_id}/candidates", response_model=list[AdminCandidateResponse])
async def list_candidates(
    election_id: uuid.UUID,
    _admin: AdminUser,
    session: Session,
) -> list[AdminCandidateResponse]:
    """All candidates of an election, including withdrawn ones, with counters."""
    election = await election_service.require_election(session, election_id)
    return [AdminCandidateResponse.model_validate(c) for c in election.candidates]


@admin_router.post(
    "/elections/{election_id}/candidates",
    response_model=AdminCandidateResponse,
    status_code=201,
)
async def add_candidate(
    election_id: uuid.UUID,
    request: CandidateCreateRequest,
    _admin: AdminUser,
    session: Session,
) -> AdminCandidateResponse:
    """Add a candidate to an upcoming election."""
    try:
        candidate = await candidate_service.add_candidate(session, election_id, request)
    except ElectionConflictError as e:
        raise _conflict(e) from e
    return AdminCandidateResponse.model_validate(candidate)


@admin_router.patch("/candidates/{candidate_id}", response_model=AdminCandidateResponse)
async def update_candidate(
    candidate_id: uuid.UUID,
    request: CandidateUpdateRequest,
    _admin: AdminUser,
    session: Session,
) -> AdminCandidateResponse:
    """Edit a candidate's descriptive fields."""
    candidate = await candidate_service.update_candidate(session, candidate_id, request)
    return AdminCandidateResponse.model_validate(candidate)


@admin_router.delete("/candidates/{candidate_id}", response_model=AdminCandidateResponse)
async def remove_candidate(
    candidate_id: uuid.UUID,
    _admin: AdminUser,
    session: Session,
) -> AdminCandidateResponse:
    """Withdraw a candidate who has not received votes."""
    try:
        candidate = await candidate_service.deactivate_candidate(session, candidate_id)
    except ElectionConflictError as e:
        raise _conflict(e) from e
    return AdminCandidateResponse.model_validate(candidate)
