"""API token issuing and validation"""
import datetime
import hmac
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import jwt

from smhelper.config import AdminConfig, TokenConfig
from smhelper.errors import BadRequest, QuotaExhausted, Revoked, Unauthenticated
from smhelper.state import TokenRecord, TokenStore
from smhelper.state.models import utcnow

_logger = logging.getLogger("smhelper")


# Largest quota a SQLite INTEGER column holds
MAX_ALLOWED_REQUESTS = 2**63 - 1


def parse_allowed_requests(value: Any) -> int:
    """Accept an int or a decimal string; reject bools, floats and out of range values."""
    if isinstance(value, bool):
        quota = None
    elif isinstance(value, int):
        quota = value
    elif isinstance(value, str):
        try:
            quota = int(value.strip())
        except ValueError:
            quota = None
    else:
        quota = None
    if quota is None or not 0 < quota <= MAX_ALLOWED_REQUESTS:
        raise BadRequest(
            "allowedRequests must be a positive integer",
            details=f"Got {value!r}, expected a whole number between 1 and {MAX_ALLOWED_REQUESTS}",
        )
    return quota


def _as_bytes(value: Any) -> bytes:
    return value.encode() if isinstance(value, str) else b""


class AdminGate:
    """Compares request credentials with the configured admin pair."""

    def __init__(self, config: AdminConfig):
        self.config = config

    def check(self, email: Any, password: Any) -> None:
        if not self.config.email or not self.config.password:
            _logger.error("Admin credentials are not configured")
            raise Unauthenticated("Invalid admin credentials")
        email_ok = hmac.compare_digest(_as_bytes(email), self.config.email.encode())
        password_ok = hmac.compare_digest(_as_bytes(password), self.config.password.encode())
        if not (email_ok and password_ok):
            _logger.warning("Admin authentication failed")
            raise Unauthenticated("Invalid admin credentials")


@dataclass
class ValidatedToken:
    token: str
    email: str
    record: TokenRecord


class TokenIssuer:
    """
    Issues signed, time-limited API tokens and validates them.

    Validation has two layers: the JWT signature and ``exp`` claim prove the
    token was minted here and is still within its lifetime, then the store
    record provides revocation and the remaining request quota.
    """

    def __init__(self, config: TokenConfig, store: TokenStore):
        if not config.jwt_secret:
            raise ValueError("JWT secret is not configured")
        self.config = config
        self.store = store

    def issue(self, email: Any, allowed_requests: Any) -> TokenRecord:
        if not email or not allowed_requests:
            raise BadRequest("Email and allowedRequests are required")
        if not isinstance(email, str):
            raise BadRequest("email must be a string")
        quota = parse_allowed_requests(allowed_requests)

        issued_at = utcnow()
        expires_at = issued_at + datetime.timedelta(days=self.config.lifetime_days)
        token = jwt.encode(
            {"email": email, "iat": issued_at, "exp": expires_at, "jti": uuid.uuid4().hex},
            self.config.jwt_secret,
            algorithm=self.config.algorithm,
        )
        record = self.store.save(token, email, quota, expires_at)
        _logger.info("Issued token email=%s allowed_requests=%d expires_at=%s", email, quota, expires_at.isoformat())
        return record

    def decode(self, token: str) -> dict:
        try:
            return jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[self.config.algorithm],
                options={"require": ["exp", "email"]},
            )
        except jwt.PyJWTError as exc:
            _logger.info("Rejected token signature error=%s", exc)
            raise Unauthenticated(
                "Invalid or expired token",
                details=str(exc),
                help=f"Tokens expire after {self.config.lifetime_days} days. Please request a new one.",
            )

    def validate(self, token: Optional[str]) -> ValidatedToken:
        if not token:
            raise Unauthenticated(
                "API token is required",
                help=f"Please provide a valid token in the '{self.config.header_name}' header. Contact admin to generate one.",
            )

        claims = self.decode(token)

        record = self.store.fetch(token)
        if record is None:
            _logger.info("Token not found or expired in store email=%s", claims.get("email"))
            raise Revoked("Invalid or revoked token")

        _logger.info("Remaining requests email=%s remaining=%d", record.email, record.allowed_requests)
        if record.allowed_requests <= 0:
            raise QuotaExhausted("Request limit exceeded")

        return ValidatedToken(token=token, email=claims["email"], record=record)
