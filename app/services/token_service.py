"""Refresh-token lifecycle: issue, validate, rotate, revoke and sweep persisted refresh tokens."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.orm import Session

from app.core.security import TokenCodec, TokenError, TokenKind, TokenPayload
from app.models import RefreshToken, User

logger = logging.getLogger(__name__)


class UserNotFoundError(Exception):
    """Raised when a refresh token is requested for a user id that does not exist."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class RefreshTokenState(str, Enum):
    """
    State of a refresh token derived from the store and the clock.

    A freshly issued token is VALID; it becomes EXPIRED once its stored expiry
    passes, and REVOKED (terminal) once its row is deleted.
    """

    VALID = "valid"
    EXPIRED = "expired"
    REVOKED = "revoked"


def _utc(dt: datetime) -> datetime:
    """Treat naive datetimes read back from the database as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenService:
    """
    Stateless orchestrator over the refresh_tokens table.

    Invalid tokens are reported as None from validate_refresh_token, never raised,
    so callers can tell "sign in again" apart from system errors.
    """

    def __init__(
        self,
        db: Session,
        codec: TokenCodec,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.codec = codec
        self.clock = clock

    def create_refresh_token(self, user_id: str) -> str:
        """Sign a refresh token for the user and persist it with expiry = now + refresh lifetime."""
        user = self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        now = self.clock()
        payload = TokenPayload(user_id=user.id, email=user.email, role=user.role)
        token = self.codec.issue(TokenKind.REFRESH, payload, now=now)
        self.db.add(
            RefreshToken(
                token=token,
                user_id=user.id,
                expires_at=now + self.codec.config.refresh_expires,
            )
        )
        self.db.commit()
        logger.debug("Issued refresh token", extra={"user_id": user_id})
        return token

    def state_of(self, token: str) -> RefreshTokenState:
        """Derive the token's state from its row (if any) and the current time."""
        row = self.db.query(RefreshToken).filter(RefreshToken.token == token).first()
        if row is None:
            return RefreshTokenState.REVOKED
        if _utc(row.expires_at) <= self.clock():
            return RefreshTokenState.EXPIRED
        return RefreshTokenState.VALID

    def validate_refresh_token(self, token: str) -> TokenPayload | None:
        """
        Return the token's payload if its row exists, is unexpired and the signature verifies.

        The stored expiry is authoritative: a deleted row invalidates the token even
        before the expiry embedded in the signed string.
        """
        if not token or self.state_of(token) is not RefreshTokenState.VALID:
            return None
        try:
            return self.codec.verify(TokenKind.REFRESH, token)
        except TokenError:
            return None

    def rotate_refresh_token(self, old_token: str, user_id: str) -> str:
        """
        Revoke ``old_token`` and issue a fresh one for the same user.

        The two steps commit separately; a failure in between leaves the user with
        no refresh token, which only forces a new login.
        """
        self.revoke_refresh_token(old_token)
        return self.create_refresh_token(user_id)

    def revoke_refresh_token(self, token: str) -> None:
        """Delete the token's row. Revoking an unknown or already revoked token is a no-op."""
        deleted = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token == token)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.debug("Revoked refresh token")

    def revoke_all_user_tokens(self, user_id: str) -> int:
        """Delete every refresh token of the user (logout everywhere). Returns rows deleted."""
        deleted = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(
            "Revoked all refresh tokens for user",
            extra={"user_id": user_id, "tokens_revoked": deleted},
        )
        return deleted

    def cleanup_expired_tokens(self) -> int:
        """Delete all rows whose expiry is at or before now. Idempotent; returns rows deleted."""
        now = self.clock()
        deleted = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.expires_at <= now)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted > 0:
            logger.info(
                "Expired refresh token sweep: cutoff=%s, tokens_deleted=%s",
                now.isoformat(),
                deleted,
            )
        return deleted
