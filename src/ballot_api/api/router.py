"""Versioned API router assembly and middleware stack."""

from fastapi import APIRouter, FastAPI

from ballot_api.api.middleware import (
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    build_rate_rules,
    setup_cors,
)
from ballot_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Mount the auth, election, vote-history, and admin routers under the v1 prefix."""
    from ballot_api.api.v1.admin import admin_router
    from ballot_api.api.v1.auth import router as auth_router
    from ballot_api.api.v1.elections import elections_router, votes_router

    v1 = APIRouter(prefix=settings.api_v1_prefix)
    for sub_router in (auth_router, elections_router, votes_router, admin_router):
        v1.include_router(sub_router)
    return v1


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install CORS, security headers, and rate limiting.

    Starlette runs the most recently added middleware first, so rate limiting
    rejects floods before any other layer does work.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.rate_limit_per_minute,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
        rules=build_rate_rules(settings),
    )
