"""Environment-driven settings.

Every field maps to an upper-case environment variable of the same name
(``DATABASE_URL``, ``OTP_EXPIRE_SECONDS``...); a ``.env`` file in the working
directory is read as a fallback.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SCHEMA_NAME = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="production", description="Deployment name shown in logs (dev, staging...)")

    # Storage
    database_url: str = Field(description="Async SQLAlchemy URL, e.g. postgresql+asyncpg://user:pw@host/ballots")
    database_schema: str | None = Field(
        default=None,
        description="Postgres schema to place on the search_path (per-branch preview databases)",
    )

    # Tokens and passcodes
    jwt_secret_key: str = Field(min_length=32, description="HMAC key for access and refresh tokens")
    jwt_algorithm: str = Field(default="HS256")
    jwt_access_token_expire_minutes: int = Field(default=30, gt=0)
    jwt_refresh_token_expire_days: int = Field(default=7, gt=0)
    otp_expire_seconds: int = Field(default=180, gt=0, description="Lifetime of a login passcode")
    otp_echo_in_response: bool = Field(
        default=False,
        description="Include the passcode in the login response; for environments without SMS delivery",
    )

    # Background status sweep
    status_refresh_enabled: bool = Field(default=True)
    status_refresh_interval: int = Field(default=60, ge=10, description="Seconds between sweeps")

    # Logging
    log_level: str = Field(default="INFO")
    log_dir: str | None = Field(
        default=None,
        description="When set, also write rotated operational logs and the JSON audit trail here",
    )

    # HTTP surface
    api_v1_prefix: str = Field(default="/api/v1")
    cors_origins: str = Field(default="", description="Comma-separated allowed origins; empty allows none")
    cors_origin_regex: str = Field(default="")
    trusted_proxy_headers: str = Field(
        default="CF-Connecting-IP,X-Forwarded-For,X-Real-IP",
        description="Comma-separated headers carrying the client address, checked in order",
    )

    # Per-IP request budgets
    rate_limit_per_minute: int = Field(default=200, gt=0, description="All endpoints")
    login_rate_limit: int = Field(default=5, gt=0, description="Password logins per 15 minutes")
    otp_rate_limit: int = Field(default=3, gt=0, description="Passcode verifications and resends per 5 minutes")
    vote_rate_limit_per_minute: int = Field(default=10, gt=0)

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is not None and not _SCHEMA_NAME.match(v):
            msg = f"Invalid database_schema: must match {_SCHEMA_NAME.pattern}"
            raise ValueError(msg)
        return v

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        return _split_csv(self.trusted_proxy_headers)

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)


def get_settings() -> Settings:
    """Load settings from the environment.

    Used as a FastAPI dependency, so tests swap it via ``dependency_overrides``.
    """
    return Settings()  # type: ignore[call-arg]
