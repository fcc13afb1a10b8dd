"""Credentials: bcrypt password hashes, signed session tokens, login passcodes.

A login passcode is six random digits. Only its SHA-256 digest is persisted,
and comparison is constant-time.
"""

import hashlib
import hmac
import re
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

OTP_LENGTH = 6
_OTP_PATTERN = re.compile(rf"^\d{{{OTP_LENGTH}}}$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def generate_otp() -> str:
    """Six digits with no leading zero, drawn from ``secrets``."""
    low = 10 ** (OTP_LENGTH - 1)
    return str(low + secrets.randbelow(9 * low))


def hash_otp(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


def is_valid_otp_format(code: str) -> bool:
    return _OTP_PATTERN.match(code) is not None


def verify_otp(code: str, code_hash: str | None, expires_at: datetime | None, now: datetime) -> bool:
    """Check a submitted passcode against the pending challenge.

    Args:
        code: Digits typed by the member.
        code_hash: Stored digest; ``None`` when no challenge is pending.
        expires_at: Challenge expiry. Naive values (SQLite) are read as UTC.
        now: Reference instant.

    Returns:
        False for a malformed, expired, or mismatched code, True otherwise.
    """
    if code_hash is None or expires_at is None or not is_valid_otp_format(code):
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return now <= expires_at and hmac.compare_digest(hash_otp(code), code_hash)


def _sign(claims: dict[str, Any], lifetime: timedelta, secret_key: str, algorithm: str) -> str:
    return jwt.encode({**claims, "exp": datetime.now(UTC) + lifetime}, secret_key, algorithm=algorithm)


def create_access_token(
    subject: str,
    role: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
) -> str:
    """Short-lived bearer token carrying the member id and role."""
    claims = {"sub": subject, "role": role, "type": "access"}
    return _sign(claims, timedelta(minutes=expires_minutes), secret_key, algorithm)


def create_refresh_token(
    subject: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_days: int = 7,
) -> str:
    """Long-lived token exchangeable for a new access/refresh pair."""
    return _sign({"sub": subject, "type": "refresh"}, timedelta(days=expires_days), secret_key, algorithm)


def decode_token(token: str, secret_key: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Verify signature and expiry, returning the claims.

    Raises:
        jwt.InvalidTokenError: Any failure, including ``ExpiredSignatureError``.
    """
    return jwt.decode(token, secret_key, algorithms=[algorithm])
