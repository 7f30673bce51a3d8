"""
Portal session management.

This module tracks login state and the lifetime of the bearer token
returned by the login endpoint.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session states."""

    NOT_LOGGED_IN = "not_logged_in"
    LOGGED_IN = "logged_in"
    EXPIRED = "expired"


class SessionManager:
    """
    Tracks the portal session.

    Examples:
        >>> session = SessionManager()
        >>> session.mark_logged_in(expires_in=3600)
        >>> session.is_active()
        True
    """

    # Used when the login response carries no token lifetime
    DEFAULT_TOKEN_LIFETIME = timedelta(minutes=30)

    # Re-login slightly before the token actually expires
    EXPIRY_MARGIN = timedelta(seconds=30)

    def __init__(self):
        self._state = SessionState.NOT_LOGGED_IN
        self._login_time: Optional[datetime] = None
        self._expires_at: Optional[datetime] = None

    @property
    def state(self) -> SessionState:
        """Get current session state."""
        return self._state

    @property
    def is_logged_in(self) -> bool:
        """Check if a login succeeded and no logout happened since."""
        return self._state == SessionState.LOGGED_IN

    def mark_logged_in(self, expires_in: Optional[float] = None):
        """
        Mark session as logged in.

        Args:
            expires_in: Token lifetime in seconds, as returned by the portal
        """
        now = datetime.now()
        lifetime = (
            timedelta(seconds=expires_in)
            if expires_in else self.DEFAULT_TOKEN_LIFETIME
        )
        self._state = SessionState.LOGGED_IN
        self._login_time = now
        self._expires_at = now + lifetime
        logger.info("Session marked as logged in")

    def mark_logged_out(self):
        """Mark session as logged out."""
        self._state = SessionState.NOT_LOGGED_IN
        self._login_time = None
        self._expires_at = None
        logger.info("Session marked as logged out")

    def is_session_expired(self) -> bool:
        """
        Check if the token has expired.

        Returns:
            True if not logged in or the token lifetime has passed
        """
        if not self.is_logged_in or not self._expires_at:
            return True

        if datetime.now() + self.EXPIRY_MARGIN >= self._expires_at:
            logger.warning("Session token expired")
            self._state = SessionState.EXPIRED
            return True

        return False

    def is_active(self) -> bool:
        """Check if the session can be used without logging in again."""
        return self.is_logged_in and not self.is_session_expired()

    def get_session_info(self) -> dict:
        """
        Get session information for debugging.

        Examples:
            >>> info = session.get_session_info()
            >>> print(f"State: {info['state']}, Logged in: {info['logged_in']}")
        """
        info = {
            "state": self._state.value,
            "logged_in": self.is_logged_in,
            "login_time": self._login_time.isoformat() if self._login_time else None,
            "expires_at": self._expires_at.isoformat() if self._expires_at else None,
        }

        if self._login_time:
            info["session_duration_seconds"] = (datetime.now() - self._login_time).total_seconds()

        return info
