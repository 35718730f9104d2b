"""Tests for the expired refresh token sweep and its CLI entrypoint."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

from pydantic import SecretStr
from sqlite_db import DatabaseTestCase, add_user

from app.models import RefreshToken
from app.token_cleanup import main, sweep_expired_tokens


def _settings() -> MagicMock:
    settings = MagicMock()
    settings.JWT_SECRET = SecretStr("access-secret")
    settings.JWT_REFRESH_SECRET = SecretStr("refresh-secret")
    settings.JWT_ALGORITHM = "HS256"
    settings.JWT_EXPIRE_MINUTES = 60
    settings.JWT_REFRESH_EXPIRE_DAYS = 7
    return settings


class TestSweepExpiredTokens(DatabaseTestCase):
    def test_deletes_expired_and_keeps_live_tokens(self) -> None:
        user_id = add_user(self.db).id
        now = datetime.now(UTC)
        self.db.add_all(
            [
                RefreshToken(token="old-1", user_id=user_id, expires_at=now - timedelta(days=1)),
                RefreshToken(token="old-2", user_id=user_id, expires_at=now - timedelta(seconds=5)),
                RefreshToken(token="live", user_id=user_id, expires_at=now + timedelta(days=3)),
            ]
        )
        self.db.commit()

        self.assertEqual(sweep_expired_tokens(self.db, _settings()), 2)
        remaining = [row.token for row in self.db.query(RefreshToken).all()]
        self.assertEqual(remaining, ["live"])
        self.assertEqual(sweep_expired_tokens(self.db, _settings()), 0)


class TestTokenCleanupMain(unittest.TestCase):
    @patch("app.token_cleanup.get_settings")
    @patch("app.token_cleanup.SessionLocal")
    @patch("app.token_cleanup.sweep_expired_tokens")
    def test_main_success_returns_zero_and_closes_session(
        self,
        mock_sweep: MagicMock,
        mock_session_local: MagicMock,
        mock_get_settings: MagicMock,
    ) -> None:
        mock_sweep.return_value = 3
        mock_db = MagicMock()
        mock_session_local.return_value = mock_db

        self.assertEqual(main(), 0)
        mock_sweep.assert_called_once_with(mock_db, mock_get_settings.return_value)
        mock_db.close.assert_called_once()

    @patch("app.token_cleanup.get_settings")
    @patch("app.token_cleanup.SessionLocal")
    @patch("app.token_cleanup.sweep_expired_tokens")
    def test_main_failure_returns_one_and_closes_session(
        self,
        mock_sweep: MagicMock,
        mock_session_local: MagicMock,
        mock_get_settings: MagicMock,
    ) -> None:
        mock_sweep.side_effect = RuntimeError("database unavailable")
        mock_db = MagicMock()
        mock_session_local.return_value = mock_db

        self.assertEqual(main(), 1)
        mock_db.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
