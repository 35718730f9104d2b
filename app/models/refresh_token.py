"""ORM model for persisted refresh tokens (server-side revocation state)."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class RefreshToken(Base):
    """
    One issued refresh token. Deleting the row revokes the token immediately,
    regardless of the expiry embedded in the signed string.
    """

    __tablename__ = "refresh_tokens"

    token = Column(Text, primary_key=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user = relationship("User", back_populates="refresh_tokens")
