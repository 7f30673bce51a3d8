"""
iZUS portal module.

This module provides the HTTP client for the portal, session tracking,
selector definitions and the HTML parsers built on them.

Usage:
    >>> from izus.portal import IzusClient, parsers
    >>>
    >>> client = IzusClient(base_url="https://www.izus.cz")
    >>> await client.login(credentials)
    >>> lessons = parsers.parse_pending_lessons(await client.index_page())
"""

from . import parsers
from .client import IzusClient
from .selectors import IzusSelectors, selectors
from .session import SessionManager, SessionState

__all__ = [
    "IzusClient",
    "IzusSelectors",
    "selectors",
    "SessionManager",
    "SessionState",
    "parsers",
]
