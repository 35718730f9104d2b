"""ORM model for persisted grain analyses."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid4())


class Analysis(Base):
    """
    Result of analysing one uploaded grain-sample image.

    defects_breakdown holds counts keyed by broken, damaged, discolored, foreignMatter.
    """

    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grain_type = Column(String(64), nullable=False, index=True)
    total_grains = Column(Integer, nullable=False)
    healthy_grains = Column(Integer, nullable=False)
    defective_grains = Column(Integer, nullable=False)
    defects_breakdown = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    purity_percentage = Column(Float, nullable=False)
    impurity_percentage = Column(Float, nullable=False)
    image_url = Column(String(1024), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    user = relationship("User", back_populates="analyses")
