"""HTTP middleware: CORS, hardening headers, and per-IP request budgets."""

import re
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from ballot_api.core.config import Settings

_DEFAULT_TRUSTED_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP")

_HARDENING_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def get_client_ip(request: Request, trusted_headers: list[str] | None = None) -> str:
    """Best-effort client address for rate limiting and ballot origin.

    The first non-empty trusted header wins. ``X-Forwarded-For`` contributes
    its leftmost hop. Without any, the socket peer is used, and ``"unknown"``
    when there is no peer either.
    """
    for header in _DEFAULT_TRUSTED_HEADERS if trusted_headers is None else trusted_headers:
        value = request.headers.get(header, "").strip()
        if value:
            return value.split(",")[0].strip() if header.lower() == "x-forwarded-for" else value
    return request.client.host if request.client else "unknown"


def setup_cors(app: FastAPI, settings: Settings) -> None:
    options: dict[str, Any] = {"allow_credentials": True, "allow_methods": ["*"], "allow_headers": ["*"]}
    if origins := settings.cors_origin_list:
        options["allow_origins"] = origins
    if regex := settings.cors_origin_regex.strip():
        options["allow_origin_regex"] = regex
    app.add_middleware(CORSMiddleware, **options)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(_HARDENING_HEADERS)
        return response


@dataclass(frozen=True)
class RateRule:
    """A request budget for POST paths matching ``pattern``."""

    name: str
    pattern: re.Pattern[str]
    limit: int
    window_seconds: float
    message: str


def build_rate_rules(settings: Settings) -> list[RateRule]:
    """Return the stricter per-route budgets for login, OTP, and vote submission."""
    return [
        RateRule(
            name="login",
            pattern=re.compile(r"/auth/login$"),
            limit=settings.login_rate_limit,
            window_seconds=15 * 60,
            message="Too many login attempts, please try again after 15 minutes.",
        ),
        RateRule(
            name="otp",
            pattern=re.compile(r"/auth/(verify|resend)-otp$"),
            limit=settings.otp_rate_limit,
            window_seconds=5 * 60,
            message="Too many OTP requests, please try again after 5 minutes.",
        ),
        RateRule(
            name="vote",
            pattern=re.compile(r"/elections/[^/]+/vote$"),
            limit=settings.vote_rate_limit_per_minute,
            window_seconds=60,
            message="Too many vote attempts, please slow down.",
        ),
    ]


def _rate_limited(message: str) -> Response:
    return JSONResponse(status_code=429, content={"detail": message, "code": "rate_limited"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory rate limiting middleware.

    Every request counts against a per-IP sliding one-minute window. POST
    requests matching a ``RateRule`` additionally count against that rule's
    own window. Uses proxy headers to identify real client IPs behind reverse
    proxies.
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 60,
        trusted_proxy_headers: list[str] | None = None,
        rules: list[RateRule] | None = None,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.trusted_proxy_headers = trusted_proxy_headers
        self.rules = rules or []
        self._request_counts: dict[tuple[str, str], list[float]] = defaultdict(list)

    def _hit(self, key: tuple[str, str], limit: int, window_seconds: float, now: float) -> bool:
        """Record a request against ``key``; return False when over budget."""
        window_start = now - window_seconds
        self._request_counts[key] = [t for t in self._request_counts[key] if t > window_start]
        if len(self._request_counts[key]) >= limit:
            return False
        self._request_counts[key].append(now)
        return True

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client_ip = get_client_ip(request, self.trusted_proxy_headers)
        now = time.time()

        if not self._hit(("*", client_ip), self.requests_per_minute, 60.0, now):
            return _rate_limited("Rate limit exceeded")

        if request.method == "POST":
            for rule in self.rules:
                if rule.pattern.search(request.url.path) and not self._hit(
                    (rule.name, client_ip), rule.limit, rule.window_seconds, now
                ):
                    return _rate_limited(rule.message)

        return await call_next(request)
