"""Unit tests for the member and election maintenance CLI commands."""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from ballot_api.cli.app import app
from ballot_api.core.config import Settings
from ballot_api.core.errors import NotFoundError
from ballot_api.schemas.results import CounterCorrection, ReconcileReport
from ballot_api.services.auth_service import DuplicateAccountError

runner = CliRunner()

_CREATE_ARGS = [
    "user",
    "create",
    "--full-name",
    "Union Admin",
    "--membership-id",
    "adm0001",
    "--email",
    "admin@example.com",
    "--password",
    "Secret123",
    "--nic",
    "901234567V",
    "--division",
    "HR",
    "--mobile",
    "0771234567",
    "--date-of-birth",
    "1985-02-01",
    "--role",
    "admin",
]


@pytest.fixture
def session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture(autouse=True)
def cli_env(session: AsyncMock):
    """Point every command at a fake settings object and session."""
    settings = Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret-key-not-for-production",
    )

    @asynccontextmanager
    async def fake_standalone_session(database_url: str, *, schema: str | None = None) -> AsyncIterator[AsyncMock]:
        yield session

    with (
        patch("ballot_api.cli.app.get_settings", return_value=settings),
        patch("ballot_api.cli.app.setup_logging"),
        patch("ballot_api.core.config.get_settings", return_value=settings),
        patch("ballot_api.core.database.standalone_session", fake_standalone_session),
    ):
        yield


class TestUserCreate:
    """Tests for `user create`."""

    def test_creates_member(self) -> None:
        user = MagicMock(membership_id="ADM0001", role="admin")
        with patch("ballot_api.services.auth_service.register_user", new_callable=AsyncMock) as register:
            register.return_value = user
            result = runner.invoke(app, _CREATE_ARGS)

        assert result.exit_code == 0, result.output
        assert "Member 'ADM0001' created with role 'admin'" in result.output
        request = register.await_args.args[1]
        assert request.membership_id == "ADM0001"
        assert request.address.city == "Colombo"

    def test_duplicate_fails(self) -> None:
        with patch(
            "ballot_api.services.auth_service.register_user",
            new_callable=AsyncMock,
            side_effect=DuplicateAccountError("A member with this email already exists"),
        ):
            result = runner.invoke(app, _CREATE_ARGS)
        assert result.exit_code == 1

    def test_duplicate_with_if_not_exists(self) -> None:
        with patch(
            "ballot_api.services.auth_service.register_user",
            new_callable=AsyncMock,
            side_effect=DuplicateAccountError("exists"),
        ):
            result = runner.invoke(app, [*_CREATE_ARGS, "--if-not-exists"])
        assert result.exit_code == 0
        assert "already exists, skipping" in result.output

    def test_invalid_fields_rejected(self) -> None:
        args = [*_CREATE_ARGS]
        args[args.index("Secret123")] = "weak"
        with patch("ballot_api.services.auth_service.register_user", new_callable=AsyncMock) as register:
            result = runner.invoke(app, args)
        assert result.exit_code == 1
        register.assert_not_awaited()

    def test_invalid_birth_date(self) -> None:
        args = [*_CREATE_ARGS]
        args[args.index("1985-02-01")] = "01/02/1985"
        result = runner.invoke(app, args)
        assert result.exit_code == 1


class TestUserList:
    """Tests for `user list`."""

    def test_lists_members(self) -> None:
        member = MagicMock(
            membership_id="MEM0001",
            full_name="Amara Perera",
            email="amara@example.com",
            division="Finance",
            role="voter",
            is_active=True,
        )
        with patch(
            "ballot_api.services.auth_service.list_users",
            new_callable=AsyncMock,
            return_value=([member], 1),
        ) as list_users:
            result = runner.invoke(app, ["user", "list", "--division", "Finance"])

        assert result.exit_code == 0, result.output
        assert "MEM0001" in result.output
        assert "Total: 1" in result.output
        assert list_users.await_args.kwargs["division"] == "Finance"


class TestElectionCommands:
    """Tests for `election refresh-statuses` and `election reconcile`."""

    def test_refresh_statuses(self) -> None:
        with patch(
            "ballot_api.services.election_service.refresh_all_statuses",
            new_callable=AsyncMock,
            return_value=3,
        ):
            result = runner.invoke(app, ["election", "refresh-statuses"])
        assert result.exit_code == 0, result.output
        assert "Updated status of 3 election(s)" in result.output

    def test_reconcile_one(self) -> None:
        election_id = uuid.uuid4()
        report = ReconcileReport(
            election_id=election_id,
            total_votes=3,
            corrections=[CounterCorrection(target="election", stored=4, counted=3)],
        )
        with patch(
            "ballot_api.services.results_service.reconcile_counters",
            new_callable=AsyncMock,
            return_value=report,
        ):
            result = runner.invoke(app, ["election", "reconcile", "--election-id", str(election_id)])
        assert result.exit_code == 0, result.output
        assert "election: 4 -> 3" in result.output
        assert "1 counter(s) corrected" in result.output

    def test_reconcile_all(self, session: AsyncMock) -> None:
        ids = [uuid.uuid4(), uuid.uuid4()]
        rows = MagicMock()
        rows.scalars.return_value.all.return_value = ids
        session.execute.return_value = rows

        async def clean(_session: object, election_id: uuid.UUID) -> ReconcileReport:
            return ReconcileReport(election_id=election_id, total_votes=0, corrections=[])

        with patch("ballot_api.services.results_service.reconcile_counters", side_effect=clean) as reconcile:
            result = runner.invoke(app, ["election", "reconcile"])
        assert result.exit_code == 0, result.output
        assert "Reconciled 2 election(s); 0 counter(s) corrected" in result.output
        assert [c.args[1] for c in reconcile.call_args_list] == ids

    def test_reconcile_invalid_id(self) -> None:
        result = runner.invoke(app, ["election", "reconcile", "--election-id", "not-a-uuid"])
        assert result.exit_code == 1

    def test_reconcile_unknown_election(self) -> None:
        with patch(
            "ballot_api.services.results_service.reconcile_counters",
            new_callable=AsyncMock,
            side_effect=NotFoundError(),
        ):
            result = runner.invoke(app, ["election", "reconcile", "--election-id", str(uuid.uuid4())])
        assert result.exit_code == 1


class TestTopLevel:
    """Tests for the root command group."""

    def test_version(self) -> None:
        from ballot_api import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert result.output.strip() == __version__

    def test_log_level_override(self) -> None:
        with patch("ballot_api.cli.app.setup_logging") as setup:
            result = runner.invoke(app, ["--log-level", "DEBUG", "version"])
        assert result.exit_code == 0
        assert setup.call_args.args[0] == "DEBUG"
