"""CLI tests for the ``flask sessions`` maintenance commands."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sessionguard.core.sessions import get_session_service
from sessionguard.services._shared.errors import StorageUnavailable
from sessionguard.services.sessions.dto import StartSessionIn
from tests.factories.refresh_token import RefreshTokenFactory


def test_reap_deletes_records_past_retention(app, session) -> None:
    long_ago = datetime.now(UTC) - timedelta(days=90)
    RefreshTokenFactory(token="ancient", created_at=long_ago)
    RefreshTokenFactory(token="fresh", created_at=datetime.now(UTC))
    session.commit()

    result = app.test_cli_runner().invoke(args=["sessions", "reap"])

    assert result.exit_code == 0, result.output
    assert "Reaped 1 expired refresh token(s)." in result.output


def test_reap_reports_storage_failures(app, monkeypatch) -> None:
    from sessionguard.services.sessions.reaper import ExpiryReaper

    def _down(self, **kwargs):
        raise StorageUnavailable("database unreachable")

    monkeypatch.setattr(ExpiryReaper, "sweep", _down)

    result = app.test_cli_runner().invoke(args=["sessions", "reap"])

    assert result.exit_code != 0
    assert "Sweep failed" in result.output


def test_revoke_user_prints_summary(app) -> None:
    with app.app_context():
        service = get_session_service()
        service.start_session(StartSessionIn(user_id="u9"))
        service.start_session(StartSessionIn(user_id="u9"))

    result = app.test_cli_runner().invoke(
        args=["sessions", "revoke-user", "u9", "--reason", "offboarding"]
    )

    assert result.exit_code == 0, result.output
    assert "Successfully revoked 2 token(s) for user u9" in result.output
