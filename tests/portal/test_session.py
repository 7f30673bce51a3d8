"""
Unit tests for SessionManager.

Tests session state and token lifetime tracking.
"""

from datetime import datetime, timedelta

import pytest

from izus.portal.session import SessionManager, SessionState


class TestSessionManager:
    """Test suite for SessionManager."""

    @pytest.fixture
    def session(self):
        """Create SessionManager instance."""
        return SessionManager()

    def test_initial_state_not_logged_in(self, session):
        """Test initial state is NOT_LOGGED_IN."""
        assert session.state == SessionState.NOT_LOGGED_IN
        assert not session.is_logged_in
        assert not session.is_active()

    def test_mark_logged_in(self, session):
        """Test marking session as logged in."""
        session.mark_logged_in(expires_in=3600)

        assert session.state == SessionState.LOGGED_IN
        assert session.is_logged_in
        assert session.is_active()
        assert session._expires_at - session._login_time == timedelta(seconds=3600)

    def test_mark_logged_in_default_lifetime(self, session):
        session.mark_logged_in()

        assert session._expires_at - session._login_time == SessionManager.DEFAULT_TOKEN_LIFETIME

    def test_mark_logged_out(self, session):
        """Test marking session as logged out."""
        session.mark_logged_in()
        session.mark_logged_out()

        assert session.state == SessionState.NOT_LOGGED_IN
        assert not session.is_logged_in
        assert session._login_time is None
        assert session._expires_at is None

    def test_is_session_expired_when_not_logged_in(self, session):
        assert session.is_session_expired() is True

    def test_is_session_expired_after_lifetime(self, session):
        """Test session expiration once the token lifetime has passed."""
        session.mark_logged_in(expires_in=3600)
        session._expires_at = datetime.now() - timedelta(seconds=1)

        assert session.is_session_expired() is True
        assert session.state == SessionState.EXPIRED
        assert not session.is_active()

    def test_is_session_expired_within_margin(self, session):
        """Test a token about to expire already counts as expired."""
        session.mark_logged_in()
        session._expires_at = datetime.now() + SessionManager.EXPIRY_MARGIN / 2

        assert session.is_session_expired() is True

    def test_get_session_info(self, session):
        """Test getting session information."""
        session.mark_logged_in()

        info = session.get_session_info()

        assert info["state"] == SessionState.LOGGED_IN.value
        assert info["logged_in"] is True
        assert info["login_time"] is not None
        assert info["expires_at"] is not None
        assert "session_duration_seconds" in info

    def test_get_session_info_not_logged_in(self, session):
        info = session.get_session_info()

        assert info["state"] == SessionState.NOT_LOGGED_IN.value
        assert info["logged_in"] is False
        assert info["login_time"] is None
        assert "session_duration_seconds" not in info
