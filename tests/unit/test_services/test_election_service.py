"""Unit tests for election administration, listing, and the status sweep."""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.errors import NotFoundError
from ballot_api.lib.lifecycle import ElectionStatus
from ballot_api.models.user import User
from ballot_api.models.vote import Vote
from ballot_api.schemas.election import ElectionCreateRequest, ElectionUpdateRequest
from ballot_api.services import election_service
from ballot_api.services.election_service import ElectionConflictError


def _create_request(now: datetime, **overrides: object) -> ElectionCreateRequest:
    data: dict[str, object] = {
        "title": "Branch Committee 2026",
        "description": "Annual election of the branch committee.",
        "start_date": now + timedelta(days=1),
        "end_date": now + timedelta(days=2),
        "division": "IT",
    }
    data.update(overrides)
    return ElectionCreateRequest(**data)


class TestCreateElection:
    """Tests for create_election."""

    @pytest.mark.asyncio
    async def test_create_sets_initial_state(
        self, async_session: AsyncSession, admin_user: User, now: datetime
    ) -> None:
        election = await election_service.create_election(async_session, _create_request(now), admin_user, now)
        assert election.status == "upcoming"
        assert election.total_votes == 0
        assert election.is_cancelled is False
        assert election.created_by_id == admin_user.id
        assert election.candidates == []

    @pytest.mark.asyncio
    async def test_create_already_open(self, async_session: AsyncSession, admin_user: User, now: datetime) -> None:
        request = _create_request(now, start_date=now - timedelta(hours=1))
        election = await election_service.create_election(async_session, request, admin_user, now)
        assert election.status == "active"


class TestBuildResponses:
    """Tests for summary and detail assembly."""

    @pytest.mark.asyncio
    async def test_status_is_derived_not_cached(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("active", status="upcoming")
        loaded = await election_service.require_election(async_session, election.id)
        assert election_service.build_summary(loaded, now).status == "active"

    @pytest.mark.asyncio
    async def test_candidate_count_excludes_withdrawn(
        self, async_session: AsyncSession, make_election, make_candidate, now
    ) -> None:
        election = await make_election("upcoming")
        await make_candidate(election)
        await make_candidate(election, is_active=False)
        loaded = await election_service.require_election(async_session, election.id)
        assert election_service.build_summary(loaded, now).candidate_count == 1

    @pytest.mark.asyncio
    async def test_detail_flags(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("active", division="Finance")
        loaded = await election_service.require_election(async_session, election.id)

        finance = election_service.build_detail_response(loaded, now, voter_division="Finance", has_voted=True)
        assert finance.can_vote is True
        assert finance.has_voted is True

        it = election_service.build_detail_response(loaded, now, voter_division="IT")
        assert it.can_vote is False

        anonymous = election_service.build_detail_response(loaded, now)
        assert anonymous.can_vote is False

    @pytest.mark.asyncio
    async def test_dates_returned_as_utc(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("active")
        loaded = await election_service.require_election(async_session, election.id)
        summary = election_service.build_summary(loaded, now)
        assert summary.start_date.tzinfo is not None
        assert summary.start_date == now - timedelta(hours=1)


class TestUpdateElection:
    """Tests for update_election."""

    @pytest.mark.asyncio
    async def test_partial_update(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("upcoming")
        updated = await election_service.update_election(
            async_session, election.id, ElectionUpdateRequest(title="Renamed Election"), now
        )
        assert updated.title == "Renamed Election"
        assert updated.division == "All"

    @pytest.mark.asyncio
    async def test_moving_start_refreshes_status(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("upcoming")
        request = ElectionUpdateRequest(start_date=now - timedelta(minutes=5))
        updated = await election_service.update_election(async_session, election.id, request, now)
        assert updated.status == "active"

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("upcoming")
        request = ElectionUpdateRequest(end_date=now)
        with pytest.raises(ValueError, match="End date must be after start date"):
            await election_service.update_election(async_session, election.id, request, now)

    @pytest.mark.parametrize("state", ["completed", "cancelled"])
    @pytest.mark.asyncio
    async def test_terminal_elections_frozen(self, async_session: AsyncSession, make_election, now, state) -> None:
        if state == "cancelled":
            election = await make_election("upcoming", is_cancelled=True, status="cancelled")
        else:
            election = await make_election("completed")
        with pytest.raises(ElectionConflictError):
            await election_service.update_election(
                async_session, election.id, ElectionUpdateRequest(title="Renamed Election"), now
            )

    @pytest.mark.asyncio
    async def test_max_candidates_below_active_count(
        self, async_session: AsyncSession, make_election, make_candidate, now
    ) -> None:
        election = await make_election("upcoming")
        for _ in range(3):
            await make_candidate(election)
        with pytest.raises(ElectionConflictError, match="3 active candidates"):
            await election_service.update_election(
                async_session, election.id, ElectionUpdateRequest(max_candidates=2), now
            )

    @pytest.mark.asyncio
    async def test_unknown_election(self, async_session: AsyncSession, now) -> None:
        with pytest.raises(NotFoundError):
            await election_service.update_election(
                async_session, uuid.uuid4(), ElectionUpdateRequest(title="Renamed Election"), now
            )


class TestCancelAndDelete:
    """Tests for cancel_election and delete_election."""

    @pytest.mark.asyncio
    async def test_cancel_is_terminal(self, async_session: AsyncSession, make_election, now) -> None:
        election = await make_election("active")
        cancelled = await election_service.cancel_election(async_session, election.id)
        assert cancelled.is_cancelled is True
        assert cancelled.status == "cancelled"
        with pytest.raises(ElectionConflictError, match="already cancelled"):
            await election_service.cancel_election(async_session, election.id)

    @pytest.mark.asyncio
    async def test_delete_without_votes(self, async_session: AsyncSession, make_election, make_candidate) -> None:
        election = await make_election("upcoming")
        await make_candidate(election)
        await election_service.delete_election(async_session, election.id)
        assert await election_service.get_election_by_id(async_session, election.id) is None

    @pytest.mark.asyncio
    async def test_delete_with_votes_refused(
        self, async_session: AsyncSession, make_election, make_candidate, voter: User, now
    ) -> None:
        election = await make_election("active")
        candidate = await make_candidate(election)
        async_session.add(
            Vote(
                voter_id=voter.id,
                election_id=election.id,
                candidate_id=candidate.id,
                cast_at=now,
                ip_address="10.0.0.1",
                user_agent="pytest",
            )
        )
        await async_session.commit()
        with pytest.raises(ElectionConflictError, match="cancel it instead"):
            await election_service.delete_election(async_session, election.id)


class TestListing:
    """Tests for division-scoped and administrative listing."""

    @pytest.mark.asyncio
    async def test_voter_sees_own_division_and_all(self, async_session: AsyncSession, make_election, now) -> None:
        await make_election("active", division="Finance", title="Finance Election")
        await make_election("active", division="All", title="Union-wide Election")
        await make_election("active", division="IT", title="IT Election")

        items, total = await election_service.list_elections_for_voter(async_session, "Finance", now=now)
        assert total == 2
        assert {i.title for i in items} == {"Finance Election", "Union-wide Election"}

    @pytest.mark.asyncio
    async def test_status_filter_uses_dates(self, async_session: AsyncSession, make_election, now) -> None:
        # Cached statuses are deliberately stale
        await make_election("active", status="upcoming", title="Open Now")
        await make_election("upcoming", title="Opens Tomorrow")
        await make_election("completed", status="active", title="Closed Yesterday")
        await make_election("active", is_cancelled=True, status="active", title="Called Off")

        for status, title in [
            (ElectionStatus.ACTIVE, "Open Now"),
            (ElectionStatus.UPCOMING, "Opens Tomorrow"),
            (ElectionStatus.COMPLETED, "Closed Yesterday"),
            (ElectionStatus.CANCELLED, "Called Off"),
        ]:
            items, total = await election_service.list_elections_for_voter(
                async_session, "IT", status=status, now=now
            )
            assert total == 1, status
            assert items[0].title == title
            assert items[0].status == status.value

    @pytest.mark.asyncio
    async def test_newest_start_first_and_paged(self, async_session: AsyncSession, make_election, now) -> None:
        await make_election("completed", title="Oldest Election")
        await make_election("active", title="Middle Election")
        await make_election("upcoming", title="Newest Election")

        items, total = await election_service.list_elections_for_voter(
            async_session, "IT", page=1, page_size=2, now=now
        )
        assert total == 3
        assert [i.title for i in items] == ["Newest Election", "Middle Election"]

        items, _ = await election_service.list_elections_for_voter(async_session, "IT", page=2, page_size=2, now=now)
        assert [i.title for i in items] == ["Oldest Election"]

    @pytest.mark.asyncio
    async def test_admin_lists_everything(self, async_session: AsyncSession, make_election, now) -> None:
        await make_election("active", division="Finance")
        await make_election("active", division="IT")
        _, total = await election_service.list_all_elections(async_session, now=now)
        assert total == 2
        items, total = await election_service.list_all_elections(async_session, division="IT", now=now)
        assert total == 1
        assert items[0].division == "IT"

    @pytest.mark.asyncio
    async def test_listing_writes_back_stale_status(self, async_session: AsyncSession, make_election, now) -> None:
        stale = await make_election("completed", status="active", division="Finance")
        fresh = await make_election("upcoming", division="Finance")

        items, _ = await election_service.list_elections_for_voter(async_session, "Finance", now=now)

        assert {item.status for item in items} == {"completed", "upcoming"}
        await async_session.refresh(stale)
        await async_session.refresh(fresh)
        assert (stale.status, fresh.status) == ("completed", "upcoming")

    @pytest.mark.asyncio
    async def test_persist_statuses_commits_only_changes(
        self, async_session: AsyncSession, make_election, now
    ) -> None:
        election = await make_election("active", status="upcoming")
        commit = AsyncMock(wraps=async_session.commit)
        with patch.object(async_session, "commit", commit):
            assert await election_service.persist_statuses(async_session, [election], now) == 1
            assert await election_service.persist_statuses(async_session, [election], now) == 0
        commit.assert_awaited_once()


class TestStatusSweep:
    """Tests for refresh_all_statuses and status_refresh_loop."""

    @pytest.mark.asyncio
    async def test_sweep_persists_derived_status(self, async_session: AsyncSession, make_election, now) -> None:
        opened = await make_election("active", status="upcoming")
        closed = await make_election("completed", status="active")
        current = await make_election("upcoming")

        assert await election_service.refresh_all_statuses(async_session, now) == 2

        for election, expected in [(opened, "active"), (closed, "completed"), (current, "upcoming")]:
            await async_session.refresh(election)
            assert election.status == expected

    @pytest.mark.asyncio
    async def test_sweep_skips_terminal(self, async_session: AsyncSession, make_election, now) -> None:
        # A completed row is never revisited even if its dates were edited in place
        await make_election("active", status="completed")
        await make_election("active", status="cancelled", is_cancelled=True)
        assert await election_service.refresh_all_statuses(async_session, now) == 0

    @pytest.mark.asyncio
    async def test_sweep_idempotent(self, async_session: AsyncSession, make_election, now) -> None:
        await make_election("active", status="upcoming")
        assert await election_service.refresh_all_statuses(async_session, now) == 1
        assert await election_service.refresh_all_statuses(async_session, now) == 0

    @pytest.mark.asyncio
    async def test_loop_survives_errors_and_stops_on_cancel(self) -> None:
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        refresh = AsyncMock(side_effect=[RuntimeError("db down"), 2, asyncio.CancelledError()])

        with (
            patch("ballot_api.services.election_service.asyncio.sleep", new_callable=AsyncMock),
            patch("ballot_api.core.database.get_session_factory", return_value=factory),
            patch("ballot_api.services.election_service.refresh_all_statuses", refresh),
        ):
            await election_service.status_refresh_loop(interval=60)

        assert refresh.await_count == 3


def test_refresh_status_reports_change() -> None:
    election = MagicMock(
        status="upcoming",
        is_cancelled=False,
        start_date=datetime(2026, 1, 1, tzinfo=UTC),
        end_date=datetime(2026, 1, 2, tzinfo=UTC),
    )
    assert election_service.refresh_status(election, datetime(2026, 1, 1, 12, tzinfo=UTC)) is True
    assert election.status == "active"
    assert election_service.refresh_status(election, datetime(2026, 1, 1, 13, tzinfo=UTC)) is False
