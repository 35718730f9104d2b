"""Password hashing and JWT issuing/verification for access and refresh tokens."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

if TYPE_CHECKING:
    from app.core.config import Settings

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for input validation.
NAME_MAX_LEN = 255
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class TokenKind(str, Enum):
    """Kind of signed token; each kind has its own secret and lifetime."""

    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidSignatureError(TokenError):
    """Signature mismatch, malformed token, wrong token kind or missing claims."""


class TokenExpiredError(TokenError):
    """Token is past its embedded expiry."""


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by access and refresh tokens."""

    user_id: str
    email: str
    role: str


@dataclass(frozen=True)
class TokenConfig:
    """Secrets and lifetimes for the token codec, built once from settings."""

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_expires: timedelta = timedelta(minutes=60)
    refresh_expires: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            access_secret=settings.JWT_SECRET.get_secret_value(),
            refresh_secret=settings.JWT_REFRESH_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
            access_expires=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
            refresh_expires=timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS),
        )

    def secret_for(self, kind: TokenKind) -> str:
        return self.access_secret if kind is TokenKind.ACCESS else self.refresh_secret

    def lifetime_for(self, kind: TokenKind) -> timedelta:
        return self.access_expires if kind is TokenKind.ACCESS else self.refresh_expires


class TokenCodec:
    """
    Stateless signer/verifier for access and refresh JWTs.

    Every token carries a random ``jti`` so two tokens issued for the same user
    in the same second are still distinct strings.
    """

    def __init__(self, config: TokenConfig) -> None:
        self.config = config

    def issue(
        self,
        kind: TokenKind,
        payload: TokenPayload,
        *,
        now: datetime | None = None,
    ) -> str:
        """Sign ``payload`` as a token of ``kind``; exp = now + lifetime for that kind."""
        issued_at = now or datetime.now(UTC)
        claims: dict[str, Any] = {
            "sub": payload.user_id,
            "email": payload.email,
            "role": payload.role,
            "type": kind.value,
            "jti": secrets.token_hex(16),
            "iat": issued_at,
            "exp": issued_at + self.config.lifetime_for(kind),
        }
        return jwt.encode(
            claims,
            self.config.secret_for(kind),
            algorithm=self.config.algorithm,
        )

    def verify(self, kind: TokenKind, token: str) -> TokenPayload:
        """
        Verify signature, expiry and kind; return the decoded payload.

        Raises TokenExpiredError if past exp, InvalidSignatureError for anything else.
        """
        try:
            claims = jwt.decode(
                token,
                self.config.secret_for(kind),
                algorithms=[self.config.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token expired") from e
        except jwt.PyJWTError as e:
            raise InvalidSignatureError("Invalid token") from e

        if claims.get("type") != kind.value:
            raise InvalidSignatureError(f"Expected a {kind.value} token")
        user_id = claims.get("sub")
        email = claims.get("email")
        role = claims.get("role")
        if not user_id or not isinstance(email, str) or not isinstance(role, str):
            raise InvalidSignatureError("Invalid token payload")
        return TokenPayload(user_id=str(user_id), email=email, role=role)
