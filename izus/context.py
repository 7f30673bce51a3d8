"""
Application context.

One AppContext per process holds the portal client, the drive, the
credentials and every cache, so that a login change can invalidate all of
them at once.
"""

import logging
from datetime import timedelta
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from .drive import DriveClient, LocalDrive
from .models.account import Credentials
from .portal.client import IzusClient
from .services.auth import CredentialsHistory, CredentialsManager, SchoolDirectory
from .services.lessons import LessonCache, LessonRefresher
from .services.teachers import TeacherCache
from .utils.config import Config
from .utils.errors import PortalError


logger = logging.getLogger(__name__)

T = TypeVar('T')


class AppContext:
    """
    Services and caches shared by all commands.

    Examples:
        >>> async with AppContext(config) as ctx:
        ...     lessons = await ctx.call(ctx.lessons.get_pending_lessons)
    """

    def __init__(
        self,
        config: Config,
        client: Optional[IzusClient] = None,
        drive: Optional[DriveClient] = None
    ):
        """
        Initialize AppContext.

        Args:
            config: Application configuration
            client: Portal client (created from config when None)
            drive: Drive with student image folders (local folder from config when None)
        """
        self.config = config
        self.client = client or IzusClient(base_url=config.base_url, timeout=config.http_timeout)
        self.drive = drive or LocalDrive(config.drive_root)

        self.schools = SchoolDirectory(self.client)
        self.history = CredentialsHistory(config.credentials_history_file)
        self.credentials = CredentialsManager(
            self.history,
            self.schools,
            username=config.izus_username,
            password=config.izus_password
        )

        self.lessons = LessonCache(
            self.client,
            self.drive,
            image_time_offset=timedelta(hours=config.image_time_offset_hours)
        )
        self.teachers = TeacherCache(
            self.client,
            max_teachers=config.stats_max_teachers,
            max_classes=config.stats_max_classes,
            chunk_size=config.stats_chunk_size,
            delay=config.stats_delay
        )
        self.refresher = LessonRefresher(
            self.lessons,
            self.client,
            interval=config.refresh_interval,
            log_refresh=config.log_refresh,
            login=self.ensure_login
        )

    async def call(self, callback: Callable[[], Awaitable[T]]) -> T:
        """
        Run a portal operation, logging in first when needed.

        Raises:
            CredentialsError: If a login is needed and credentials are missing
            PortalError: If the login or a request fails
        """
        await self.ensure_login()

        try:
            return await callback()
        except httpx.HTTPError as e:
            raise PortalError("Portal request failed", e) from e

    async def ensure_login(self):
        """
        Log in with the current credentials unless the session is active.

        Raises:
            CredentialsError: If credentials are missing
            PortalError: If the login fails
        """
        if not self.client.session.is_active():
            await self.client.login(self.credentials.get())

    def invalidate_caches(self):
        self.lessons.invalidate()
        self.teachers.invalidate()

    async def change_login(self, credentials: Credentials) -> bool:
        """
        Switch to other credentials and verify them.

        Raises:
            PortalError: If the new credentials are rejected
        """
        if self.client.is_logged_in:
            await self.client.logout()
        self.credentials.set(credentials)
        self.invalidate_caches()
        return await self.call(lambda: self.credentials.check_credentials(self.client))

    async def forget_login(self):
        """Drop credentials and caches, then end the portal session."""
        self.credentials.forget()
        self.invalidate_caches()
        logger.info("Login credentials forgotten")
        if self.client.is_logged_in:
            await self.client.logout()

    async def close(self):
        """Stop background refresh and close the HTTP client."""
        await self.refresher.stop()
        await self.client.aclose()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
