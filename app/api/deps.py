"""Shared FastAPI dependencies: token codec, token service and grain analyzer."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.security import TokenCodec, TokenConfig
from app.services.grain_analysis import GrainAnalyzer, RandomGrainAnalyzer
from app.services.token_service import TokenService


@lru_cache
def get_token_codec() -> TokenCodec:
    """Codec configured once from settings."""
    return TokenCodec(TokenConfig.from_settings(get_settings()))


def get_token_service(
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> TokenService:
    return TokenService(db, codec)


_analyzer = RandomGrainAnalyzer()


def get_grain_analyzer() -> GrainAnalyzer:
    """Analyzer used by image processing; override to plug in a real model."""
    return _analyzer
