"""SQLAlchemy ORM models."""

from app.models.analysis import Analysis
from app.models.base import Base
from app.models.refresh_token import RefreshToken
from app.models.user import USER_TYPES, User

__all__ = ["Analysis", "Base", "RefreshToken", "USER_TYPES", "User"]
