"""Authentication API endpoints.

POST /auth/register, POST /auth/login, POST /auth/verify-otp,
POST /auth/resend-otp, POST /auth/refresh, GET /auth/me, GET /health, GET /info.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ballot_api import __version__
from ballot_api.core.config import Settings, get_settings
from ballot_api.core.dependencies import get_async_session, get_current_user
from ballot_api.models.user import User
from ballot_api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    OtpChallengeResponse,
    OtpVerifyRequest,
    RefreshRequest,
    RegisterRequest,
    ResendOtpRequest,
    TokenResponse,
    UserResponse,
)
from ballot_api.services import auth_service

router = APIRouter(tags=["auth"])


def _challenge(user: User, code: str, settings: Settings) -> OtpChallengeResponse:
    return OtpChallengeResponse(
        user_id=user.id,
        expires_in=settings.otp_expire_seconds,
        otp=code if settings.otp_echo_in_response else None,
    )


@router.get("/health", status_code=200)
async def health_check() -> dict:
    """Health check endpoint (no authentication required)."""
    return {"status": "healthy"}


@router.get("/info", status_code=200)
async def info(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    """Return application version and environment."""
    return {
        "version": __version__,
        "environment": settings.environment,
    }


@router.post("/auth/register", response_model=UserResponse, status_code=201)
async def register(
    request: RegisterRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """Register a new voter account. Does not log the member in."""
    try:
        return await auth_service.register_user(session, request)
    except auth_service.DuplicateAccountError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.post("/auth/login", response_model=OtpChallengeResponse)
async def login(
    request: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OtpChallengeResponse:
    """Verify email, NIC, and password, then issue a one-time passcode."""
    user = await auth_service.authenticate_user(session, request.email, request.nic, request.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    code = await auth_service.issue_login_otp(session, user, settings)
    return _challenge(user, code, settings)


@router.post("/auth/verify-otp", response_model=LoginResponse)
async def verify_otp(
    request: OtpVerifyRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """Complete login with the one-time passcode and return JWT tokens."""
    user = await auth_service.verify_login_otp(session, request.user_id, request.otp)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired OTP",
        )
    tokens = auth_service.generate_tokens(user, settings)
    return LoginResponse(**tokens.model_dump(), user=UserResponse.model_validate(user))


@router.post("/auth/resend-otp", response_model=OtpChallengeResponse)
async def resend_otp(
    request: ResendOtpRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OtpChallengeResponse:
    """Replace the pending passcode of a login in progress."""
    code = await auth_service.resend_login_otp(session, request.user_id, settings)
    if code is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No login in progress; sign in again",
        )
    user = await auth_service.get_user(session, request.user_id)
    return _challenge(user, code, settings)  # type: ignore[arg-type]


@router.post("/auth/refresh", response_model=TokenResponse)
async def refresh_token(
    request: RefreshRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """Refresh an access token using a refresh token."""
    try:
        return await auth_service.refresh_access_token(session, request.refresh_token, settings)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e


@router.get("/auth/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get the currently authenticated member's profile."""
    return current_user
