"""Health check response."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel


class HealthResponse(CamelModel):
    """Liveness plus database reachability, polled by load balancers."""

    status: Literal["ok"] = "ok"
    environment: str = Field(description="APP_ENV (dev or prod)")
    version: str
    timestamp: datetime = Field(description="Server time (UTC)")
    database: Literal["connected", "disconnected"] | None = None
