"""Voter-facing election endpoints.

GET /elections, GET /elections/{id}, GET /elections/{id}/candidates,
POST /elections/{id}/vote, GET /elections/{id}/results, GET /votes/me.
"""

import uuid
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.dependencies import get_async_session, get_current_user, get_origin_meta
from ballot_api.lib.lifecycle import ElectionStatus
from ballot_api.models.user import User
from ballot_api.schemas.ballot import VoteHistoryResponse, VoteReceipt, VoteRequest
from ballot_api.schemas.common import ErrorResponse, PaginationParams, build_pagination
from ballot_api.schemas.election import (
    CandidateResponse,
    ElectionDetailResponse,
    PaginatedElectionListResponse,
)
from ballot_api.schemas.results import ElectionResultsResponse
from ballot_api.services import ballot_service, candidate_service, election_service, results_service
from ballot_api.services.ballot_service import OriginMeta

elections_router = APIRouter(prefix="/elections", tags=["elections"])
votes_router = APIRouter(prefix="/votes", tags=["votes"])


@elections_router.get("", response_model=PaginatedElectionListResponse)
async def list_elections(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    status: Annotated[ElectionStatus | None, Query(description="Filter by current status")] = None,
) -> PaginatedElectionListResponse:
    """List elections open to the caller's division, plus all-division elections."""
    items, total = await election_service.list_elections_for_voter(
        session,
        current_user.division,
        status=status,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedElectionListResponse(
        items=items,
        pagination=build_pagination(total, pagination.page, pagination.page_size),
    )


@elections_router.get(
    "/{election_id}",
    response_model=ElectionDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_election(
    election_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ElectionDetailResponse:
    """Get an election with the caller's ``has_voted`` and ``can_vote`` flags.

    Elections of other divisions are readable too; they report ``can_vote``
    false and voting in them is refused with 403.
    """
    now = datetime.now(UTC)
    election = await election_service.require_election(session, election_id)
    await election_service.persist_statuses(session, [election], now)
    voted = await ballot_service.has_voted(session, current_user.id, election_id)
    return election_service.build_detail_response(
        election,
        now,
        voter_division=current_user.division,
        has_voted=voted,
    )


@elections_router.get("/{election_id}/candidates", response_model=list[CandidateResponse])
async def list_candidates(
    election_id: uuid.UUID,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> list[CandidateResponse]:
    """List the election's active candidates in ballot order."""
    candidates = await candidate_service.list_active_candidates(session, election_id)
    return [CandidateResponse.model_validate(c) for c in candidates]


@elections_router.post(
    "/{election_id}/vote",
    response_model=VoteReceipt,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def cast_vote(
    election_id: uuid.UUID,
    request: VoteRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    origin: Annotated[OriginMeta, Depends(get_origin_meta)],
) -> VoteReceipt:
    """Cast the caller's single vote in an election."""
    return await ballot_service.submit_vote(session, current_user, election_id, request.candidate_id, origin)


@elections_router.get(
    "/{election_id}/results",
    response_model=ElectionResultsResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_results(
    election_id: uuid.UUID,
    _current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ElectionResultsResponse:
    """Get ranked results of a completed election."""
    return await results_service.compute_results(session, election_id)


@votes_router.get("/me", response_model=VoteHistoryResponse)
async def my_votes(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> VoteHistoryResponse:
    """The caller's voting history, newest first."""
    items = await ballot_service.list_votes_for_voter(session, current_user.id)
    return VoteHistoryResponse(items=items, total=len(items))
