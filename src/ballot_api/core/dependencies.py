"""Request-scoped dependencies: database session, authenticated member, role
gate, and the ballot origin recorded with each vote.
"""

import uuid
from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api.api.middleware import get_client_ip
from ballot_api.core.config import Settings, get_settings
from ballot_api.core.database import get_session_factory
from ballot_api.core.security import decode_token
from ballot_api.models.user import User
from ballot_api.services.ballot_service import OriginMeta

# Tokens are only minted after the OTP step, so that is the documented token URL.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/verify-otp")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """One session per request, closed when the response is sent."""
    async with get_session_factory()() as session:
        yield session


def _access_subject(token: str, settings: Settings) -> uuid.UUID:
    """Return the member id of a valid access token.

    Raises:
        HTTPException: 401 for a bad signature, expiry, wrong token type, or
            a subject that is not a UUID.
    """
    try:
        claims = decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
        if claims.get("type") != "access":
            raise _unauthorized()
        return uuid.UUID(claims["sub"])
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        raise _unauthorized() from exc


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Resolve the bearer token to an active member.

    Deactivation takes effect immediately: tokens of a deactivated member are
    refused even before they expire.
    """
    member = await session.get(User, _access_subject(token, settings))
    if member is None or not member.is_active:
        raise _unauthorized()
    return member


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(*roles: str) -> Callable[..., Coroutine[Any, Any, User]]:
    """Build a dependency that admits only members holding one of ``roles``."""

    async def role_gate(member: CurrentUser) -> User:
        if member.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{member.role}' may not access this resource",
            )
        return member

    return role_gate


def get_origin_meta(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> OriginMeta:
    """Client address (proxy-aware) and user agent of a ballot request."""
    return OriginMeta(
        ip_address=get_client_ip(request, settings.trusted_proxy_header_list),
        user_agent=request.headers.get("user-agent", ""),
    )
