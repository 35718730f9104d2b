"""API routes mounted under API_PREFIX (health is mounted at the root)."""

from typing import Any

from fastapi import APIRouter

from app.api.routes import analyses, auth, health, images
from app.schemas.common import ErrorResponse

# Documents the {error, code} body shared by every error response.
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse, "description": description}
    for status, description in (
        (400, "Validation error"),
        (401, "Missing or invalid credentials"),
        (403, "User type not allowed"),
        (404, "Not found"),
        (409, "Conflict"),
        (500, "Internal error"),
    )
}

router = APIRouter(responses=ERROR_RESPONSES)
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(images.router, prefix="/images", tags=["images"])
router.include_router(analyses.router, prefix="/analyses", tags=["analyses"])

health_router = health.router

__all__ = ["ERROR_RESPONSES", "router", "health_router"]
