"""Signed access, refresh and password-reset tokens (HS256 JWTs)."""

import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any, Literal

import jwt

from cashback.auth.exceptions import InvalidTokenError
from cashback.core.settings import get_settings

TokenType = Literal["access", "refresh", "password-reset"]


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_jti: str
    access_expires_in: timedelta
    refresh_expires_in: timedelta


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access or refresh token."""

    user_id: uuid.UUID
    email: str | None
    role: str | None
    token_type: str
    jti: str
    expires_at: datetime


class TokenIssuer:
    """Issue and verify JWTs for a user identity.

    Every token carries sub, type, jti, iss, iat and exp. Access and refresh
    tokens additionally carry email and role.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        issuer: str = "cashback-api",
        access_expires_in: timedelta = timedelta(days=7),
        refresh_expires_in: timedelta = timedelta(days=30),
        password_reset_expires_in: timedelta = timedelta(hours=1),
    ):
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer
        self.access_expires_in = access_expires_in
        self.refresh_expires_in = refresh_expires_in
        self.password_reset_expires_in = password_reset_expires_in

    def _encode(
        self,
        subject: uuid.UUID,
        token_type: TokenType,
        expires_in: timedelta,
        extra: dict[str, Any] | None = None,
    ) -> tuple[str, str]:
        now = datetime.now(UTC)
        jti = secrets.token_urlsafe(16)
        payload: dict[str, Any] = {
            "sub": str(subject),
            "type": token_type,
            "jti": jti,
            "iss": self._issuer,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
        }
        if extra:
            payload.update(extra)
        return jwt.encode(payload, self._secret, algorithm=self._algorithm), jti

    def _decode(self, token: str, expected_type: TokenType) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["sub", "type", "jti", "exp", "iat", "iss"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError() from e

        if payload.get("type") != expected_type:
            raise InvalidTokenError()
        return payload

    def issue_pair(self, user_id: uuid.UUID, email: str, role: str) -> TokenPair:
        claims = {"email": email, "role": role}
        access_token, _ = self._encode(
            user_id, "access", self.access_expires_in, claims
        )
        refresh_token, refresh_jti = self._encode(
            user_id, "refresh", self.refresh_expires_in, claims
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_jti=refresh_jti,
            access_expires_in=self.access_expires_in,
            refresh_expires_in=self.refresh_expires_in,
        )

    def verify(
        self, token: str, expected_type: Literal["access", "refresh"] = "access"
    ) -> TokenClaims:
        """Verify signature, issuer, expiry and type.

        Raises:
            InvalidTokenError: If any check fails or sub is not a UUID
        """
        payload = self._decode(token, expected_type)
        try:
            user_id = uuid.UUID(str(payload["sub"]))
        except ValueError as e:
            raise InvalidTokenError() from e

        return TokenClaims(
            user_id=user_id,
            email=payload.get("email"),
            role=payload.get("role"),
            token_type=payload["type"],
            jti=str(payload["jti"]),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
        )

    def issue_password_reset(self, user_id: uuid.UUID) -> str:
        token, _ = self._encode(
            user_id, "password-reset", self.password_reset_expires_in
        )
        return token

    def verify_password_reset(self, token: str) -> uuid.UUID:
        payload = self._decode(token, "password-reset")
        try:
            return uuid.UUID(str(payload["sub"]))
        except ValueError as e:
            raise InvalidTokenError("Invalid password reset token") from e


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Get cached token issuer built from settings."""
    settings = get_settings()
    return TokenIssuer(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        issuer=settings.jwt_issuer,
        access_expires_in=settings.access_token_expires_in,
        refresh_expires_in=settings.refresh_token_expires_in,
        password_reset_expires_in=settings.password_reset_expires_in,
    )
