"""Member account CLI commands (bootstrap administrators, inspect members)."""

import asyncio
from datetime import date

import typer

user_app = typer.Typer()


@user_app.command("create")
def create_user(
    full_name: str = typer.Option(..., prompt=True, help="Full name"),
    membership_id: str = typer.Option(..., prompt=True, help="Union membership ID"),
    email: str = typer.Option(..., prompt=True, help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"),
    nic: str = typer.Option(..., prompt=True, help="National identity number"),
    division: str = typer.Option(..., prompt=True, help="Division (IT, Finance, HR, ...)"),
    mobile: str = typer.Option(..., prompt=True, help="Mobile number (10-15 digits)"),
    date_of_birth: str = typer.Option(..., prompt=True, help="Date of birth (YYYY-MM-DD)"),
    street: str = typer.Option("Union Headquarters", help="Street address"),
    city: str = typer.Option("Colombo", help="City"),
    state: str = typer.Option("Western", help="State / province"),
    postal_code: str = typer.Option("00100", help="Postal code"),
    role: str = typer.Option("voter", prompt=True, help="Role (voter/admin)"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if the member already exists (idempotent mode)",
    ),
) -> None:
    """Create a member account."""
    try:
        birth = date.fromisoformat(date_of_birth)
    except ValueError as e:
        typer.echo(f"Error: invalid date of birth '{date_of_birth}' (expected YYYY-MM-DD)", err=True)
        raise typer.Exit(code=1) from e
    fields = {
        "full_name": full_name,
        "membership_id": membership_id,
        "email": email,
        "password": password,
        "nic": nic,
        "division": division,
        "mobile": mobile,
        "date_of_birth": birth,
        "address": {"street": street, "city": city, "state": state, "postal_code": postal_code},
        "role": role,
    }
    asyncio.run(_create_user(fields, if_not_exists=if_not_exists))


async def _create_user(fields: dict, *, if_not_exists: bool = False) -> None:
    """Async implementation of member creation."""
    from ballot_api.core.config import get_settings
    from ballot_api.core.database import standalone_session
    from ballot_api.schemas.auth import UserCreateRequest
    from ballot_api.services.auth_service import DuplicateAccountError, register_user

    settings = get_settings()
    try:
        request = UserCreateRequest(**fields)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    async with standalone_session(settings.database_url, schema=settings.database_schema) as session:
        try:
            user = await register_user(session, request)
        except DuplicateAccountError as e:
            if if_not_exists:
                typer.echo(f"Member '{request.email}' already exists, skipping (--if-not-exists)")
                return
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1) from e
        typer.echo(f"Member '{user.membership_id}' created with role '{user.role}'")


@user_app.command("list")
def list_users(
    division: str | None = typer.Option(None, "--division", help="Only members of this division"),
    search: str | None = typer.Option(None, "--search", help="Match name, email, or membership ID"),
) -> None:
    """List members."""
    asyncio.run(_list_users(division, search))


async def _list_users(division: str | None, search: str | None) -> None:
    """Async implementation of member listing."""
    from ballot_api.core.config import get_settings
    from ballot_api.core.database import standalone_session
    from ballot_api.services.auth_service import list_users

    settings = get_settings()
    async with standalone_session(settings.database_url, schema=settings.database_schema) as session:
        users, total = await list_users(session, search=search, division=division, page_size=1000)
        typer.echo(f"{'Membership':<12} {'Name':<24} {'Email':<30} {'Division':<12} {'Role':<6} {'Active':<6}")
        typer.echo("-" * 95)
        for user in users:
            typer.echo(
                f"{user.membership_id:<12} {user.full_name:<24} {user.email:<30} "
                f"{user.division:<12} {user.role:<6} {user.is_active!s:<6}"
            )
        typer.echo(f"\nTotal: {total}")
