"""Authentication and member account service.

Handles registration, the password + one-time-passcode login flow, token
generation and refresh, and administrative account management.
"""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.core.config import Settings
from ballot_api.core.errors import NotFoundError
from ballot_api.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_otp,
    hash_otp,
    hash_password,
    verify_otp,
    verify_password,
)
from ballot_api.lib.lifecycle import as_utc
from ballot_api.models.user import User
from ballot_api.schemas.auth import RegisterRequest, TokenResponse, UserCreateRequest


class DuplicateAccountError(ValueError):
    """Raised when an email, membership id, or NIC is already registered."""


async def register_user(
    session: AsyncSession,
    request: RegisterRequest | UserCreateRequest,
) -> User:
    """Create a member account.

    Self-registration always yields a ``voter``; only ``UserCreateRequest``
    (CLI bootstrap) may choose the role.

    Args:
        session: The database session.
        request: Validated registration data.

    Returns:
        The created User.

    Raises:
        DuplicateAccountError: If the email, membership id, or NIC is taken.
    """
    existing = await session.execute(
        select(User.id).where(
            or_(
                User.email == request.email,
                User.membership_id == request.membership_id,
                User.nic == request.nic,
            )
        )
    )
    if existing.first() is not None:
        msg = "A member with this email, membership ID, or NIC already exists"
        raise DuplicateAccountError(msg)

    user = User(
        full_name=request.full_name,
        membership_id=request.membership_id,
        email=request.email,
        hashed_password=hash_password(request.password),
        mobile=request.mobile,
        date_of_birth=request.date_of_birth,
        street=request.address.street,
        city=request.address.city,
        state=request.address.state,
        postal_code=request.address.postal_code,
        nic=request.nic,
        division=request.division.value,
        role=getattr(request, "role", "voter"),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent registration of the same identity.
        await session.rollback()
        msg = "A member with this email, membership ID, or NIC already exists"
        raise DuplicateAccountError(msg) from e
    await session.refresh(user)
    logger.info("Registered member {} ({})", user.id, user.division)
    return user


async def authenticate_user(session: AsyncSession, email: str, nic: str, password: str) -> User | None:
    """Check the first login factor.

    Args:
        session: The database session.
        email: Account email (already lower-cased).
        nic: National identity number (already upper-cased).
        password: The plaintext password.

    Returns:
        The User if the account exists, is active, and the password matches.
    """
    result = await session.execute(select(User).where(User.email == email, User.nic == nic))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


async def issue_login_otp(session: AsyncSession, user: User, settings: Settings, now: datetime | None = None) -> str:
    """Issue a fresh passcode for ``user``, replacing any pending one.

    Only the digest and expiry are stored.

    Returns:
        The plaintext passcode, for delivery to the member.
    """
    now = now or datetime.now(UTC)
    code = generate_otp()
    user.otp_hash = hash_otp(code)
    user.otp_expires_at = now + timedelta(seconds=settings.otp_expire_seconds)
    user.last_login_at = now
    await session.commit()
    logger.info("Issued login OTP for member {} (valid {}s)", user.id, settings.otp_expire_seconds)
    return code


async def verify_login_otp(
    session: AsyncSession,
    user_id: uuid.UUID,
    code: str,
    now: datetime | None = None,
) -> User | None:
    """Check the second login factor and consume the passcode.

    A passcode is single-use: it is cleared on success, and cleared when it
    is found expired so that a stale challenge cannot be retried.

    Args:
        session: The database session.
        user_id: The member who received the passcode.
        code: The submitted six-digit passcode.
        now: Evaluation instant (defaults to the current time).

    Returns:
        The User on success, None otherwise.
    """
    now = now or datetime.now(UTC)
    user = await session.get(User, user_id)
    if user is None or not user.is_active or user.otp_hash is None:
        return None

    if verify_otp(code, user.otp_hash, user.otp_expires_at, now):
        user.otp_hash = None
        user.otp_expires_at = None
        await session.commit()
        return user

    expires_at = user.otp_expires_at
    if expires_at is not None and now > as_utc(expires_at):
        user.otp_hash = None
        user.otp_expires_at = None
        await session.commit()
    return None


async def resend_login_otp(
    session: AsyncSession,
    user_id: uuid.UUID,
    settings: Settings,
    now: datetime | None = None,
) -> str | None:
    """Replace a pending passcode with a new one.

    Only members with an outstanding challenge (password already verified)
    can request a resend.

    Returns:
        The new plaintext passcode, or None if there is no pending challenge.
    """
    user = await session.get(User, user_id)
    if user is None or not user.is_active or user.otp_hash is None:
        return None
    return await issue_login_otp(session, user, settings, now)


def generate_tokens(user: User, settings: Settings) -> TokenResponse:
    """Generate access and refresh tokens for a user.

    Args:
        user: The authenticated user.
        settings: Application settings.

    Returns:
        Token response with access and refresh tokens.
    """
    access_token = create_access_token(
        subject=str(user.id),
        role=user.role,
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_access_token_expire_minutes,
    )
    refresh_token = create_refresh_token(
        subject=str(user.id),
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_days=settings.jwt_refresh_token_expire_days,
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


async def refresh_access_token(
    session: AsyncSession,
    refresh_token_str: str,
    settings: Settings,
) -> TokenResponse:
    """Refresh an access token using a refresh token.

    Raises:
        ValueError: If the refresh token is invalid or the user is unknown or inactive.
    """
    try:
        payload = decode_token(refresh_token_str, settings.jwt_secret_key, settings.jwt_algorithm)
    except jwt.InvalidTokenError as e:
        msg = "Invalid refresh token"
        raise ValueError(msg) from e

    if payload.get("type") != "refresh":
        msg = "Token is not a refresh token"
        raise ValueError(msg)

    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError as e:
        msg = "Invalid token payload"
        raise ValueError(msg) from e

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        msg = "User not found or inactive"
        raise ValueError(msg)

    return generate_tokens(user, settings)


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Get a user by ID."""
    return await session.get(User, user_id)


async def list_users(
    session: AsyncSession,
    *,
    search: str | None = None,
    division: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[User], int]:
    """List members with optional search and division filter.

    Args:
        session: The database session.
        search: Case-insensitive match on name, email, or membership id.
        division: Exact division filter.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (users list, total count).
    """
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                User.membership_id.ilike(pattern),
            )
        )
    if division:
        filters.append(User.division == division)

    count_result = await session.execute(select(func.count(User.id)).where(*filters))
    total = count_result.scalar_one()

    offset = (page - 1) * page_size
    result = await session.execute(
        select(User).where(*filters).order_by(User.created_at.desc()).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def set_user_active(session: AsyncSession, user_id: uuid.UUID, is_active: bool, acting_user: User) -> User:
    """Activate or deactivate a member account. Accounts are never deleted.

    Raises:
        NotFoundError: If the user does not exist.
        ValueError: If an administrator tries to deactivate their own account.
    """
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    if user.id == acting_user.id and not is_active:
        msg = "You cannot deactivate your own account"
        raise ValueError(msg)
    user.is_active = is_active
    if not is_active:
        user.otp_hash = None
        user.otp_expires_at = None
    await session.commit()
    await session.refresh(user)
    logger.info("Member {} {} by {}", user.id, "activated" if is_active else "deactivated", acting_user.id)
    return user
