"""
CLI entrypoint for the expired refresh token sweep. The app runs it once at
startup; run it from cron for a periodic sweep, e.g.:

  python -m app.token_cleanup

Or hourly: 0 * * * * cd /path/to/agroview && .venv/bin/python -m app.token_cleanup
"""

import logging
import sys
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.security import TokenCodec, TokenConfig
from app.services.token_service import TokenService

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def sweep_expired_tokens(db: Session, settings: "Settings") -> int:
    """Delete refresh tokens whose stored expiry has passed. Returns rows deleted."""
    service = TokenService(db, TokenCodec(TokenConfig.from_settings(settings)))
    return service.cleanup_expired_tokens()


def main() -> int:
    """Run the sweep once and exit (0 on success, 1 on failure)."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    settings = get_settings()
    db = SessionLocal()
    try:
        deleted = sweep_expired_tokens(db, settings)
        logger.info("Token cleanup completed: tokens_deleted=%s", deleted)
        return 0
    except Exception as e:
        logger.exception("Token cleanup failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
