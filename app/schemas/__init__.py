"""Pydantic request/response schemas."""

from app.schemas.analysis import (
    AnalysisDetail,
    AnalysisHistoryItem,
    AnalysisListResponse,
    AnalysisResult,
    CompareRequest,
    ComparisonResponse,
    DefectsBreakdown,
    StatsResponse,
)
from app.schemas.auth import (
    AuthResponse,
    CurrentUser,
    LoginRequest,
    LogoutRequest,
    ProfileOut,
    RefreshTokenRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UserOut,
)
from app.schemas.common import ErrorResponse, MessageResponse, Pagination
from app.schemas.health import HealthResponse
from app.schemas.image import ImageInfo, SupportedFormats, ValidatedImage

__all__ = [
    "AnalysisDetail",
    "AnalysisHistoryItem",
    "AnalysisListResponse",
    "AnalysisResult",
    "AuthResponse",
    "CompareRequest",
    "ComparisonResponse",
    "CurrentUser",
    "DefectsBreakdown",
    "ErrorResponse",
    "HealthResponse",
    "ImageInfo",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "Pagination",
    "ProfileOut",
    "RefreshTokenRequest",
    "RegisterRequest",
    "StatsResponse",
    "SupportedFormats",
    "UpdateProfileRequest",
    "UserOut",
    "ValidatedImage",
]
