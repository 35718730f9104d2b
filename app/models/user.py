"""ORM model for application users (auth and user-type based access)."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base

# User categories accepted at registration (exposed over HTTP as userType).
USER_TYPES: tuple[str, ...] = ("PRODUTOR", "COOPERATIVA", "COMPRADOR")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid4())


class User(Base):
    """
    User account for JWT authentication.

    role: one of USER_TYPES (producer, cooperative or buyer).
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    analyses = relationship(
        "Analysis",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
