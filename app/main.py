"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.routes import health_router
from app.api.routes import router as api_router
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.errors import register_exception_handlers
from app.services.image_storage import PUBLIC_IMAGE_PATH
from app.token_cleanup import sweep_expired_tokens

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Prepare the upload directory and sweep expired refresh tokens once at startup."""
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    if settings.TOKEN_CLEANUP_ON_STARTUP:
        db = SessionLocal()
        try:
            deleted = sweep_expired_tokens(db, settings)
        finally:
            db.close()
        logger.info("Startup token cleanup: tokens_deleted=%s", deleted)
    logger.info("AgroView API started", extra={"environment": settings.APP_ENV})
    yield


app = FastAPI(
    title="AgroView API",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.APP_ENV == "dev":

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response


register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_PREFIX)
app.include_router(health_router, prefix="/health", tags=["health"])
app.mount(
    PUBLIC_IMAGE_PATH,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


@app.get("/")
def root() -> dict[str, object]:
    """Root route; minimal payload for discovery."""
    return {
        "message": "AgroView API - grain classification",
        "version": settings.APP_VERSION,
        "endpoints": {
            "auth": f"{settings.API_PREFIX}/auth",
            "images": f"{settings.API_PREFIX}/images",
            "analyses": f"{settings.API_PREFIX}/analyses",
            "health": "/health",
        },
    }
