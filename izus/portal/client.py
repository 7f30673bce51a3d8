"""
iZUS portal client.

This module provides the IzusClient class: login with the portal's salted
password hash, bearer-token authenticated JSON calls, and retrieval of the
HTML pages the parsers read.
"""

import hashlib
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .selectors import IzusSelectors
from .session import SessionManager
from ..models.account import Credentials
from ..utils.errors import PortalError
from ..utils.logger import mask_username


logger = logging.getLogger(__name__)


class IzusClient:
    """
    Client for the iZUS portal.

    Examples:
        >>> client = IzusClient(base_url="https://www.izus.cz")
        >>> await client.login(Credentials("novak.jan", SecureString("secret")))
        >>> html = await client.index_page()
        >>> await client.aclose()
    """

    def __init__(
        self,
        base_url: str = "https://www.izus.cz",
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize IzusClient.

        Args:
            base_url: Portal URL
            timeout: HTTP timeout in seconds
            http: Preconfigured HTTP client (tests pass one with a mock transport)
        """
        self.base_url = base_url.rstrip('/')
        self.selectors = IzusSelectors()
        self.session = SessionManager()
        self.http = http or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

        logger.info(f"IzusClient initialized with base_url: {self.base_url}")

    @property
    def is_logged_in(self) -> bool:
        return self.session.is_logged_in

    @staticmethod
    def hash_password(username: str, password: str, salt: str) -> str:
        """
        Hash the password the way the portal expects it.

        ``sha1(md5(password + username) + salt)``, both as hex digests.
        """
        part = hashlib.md5((password + username).encode("utf-8")).hexdigest()
        return hashlib.sha1((part + salt).encode("utf-8")).hexdigest()

    async def login(self, credentials: Credentials) -> Dict[str, Any]:
        """
        Log in and authorize all following requests with the returned token.

        Returns:
            Login response (access_token, expires_in)

        Raises:
            PortalError: If the portal rejects the login or is unreachable
        """
        salt = str(int(time.time()))
        password_hash = self.hash_password(
            credentials.username,
            credentials.password.get_value(),
            salt
        )

        logger.info(f"Logging in as {mask_username(credentials.username)}")
        try:
            response = await self.http.post(self.selectors.endpoints.login, json={
                "username": credentials.username,
                "password": password_hash,
                "salt": salt,
            })
            response.raise_for_status()
            data = response.json()
            token = data["access_token"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Login failed: {e}")
            raise PortalError("Login failed", e) from e

        self.http.headers["Authorization"] = f"Bearer {token}"
        self.session.mark_logged_in(data.get("expires_in"))
        return data

    async def logout(self) -> Dict[str, Any]:
        """Log out and drop the bearer token."""
        try:
            data = await self.get_json(self.selectors.endpoints.logout)
        finally:
            self.http.headers.pop("Authorization", None)
            self.session.mark_logged_out()
        return data

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """
        GET a portal path.

        Raises:
            PortalError: On transport errors and non-2xx responses
        """
        try:
            response = await self.http.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Request to {path} failed: {e}")
            raise PortalError("Portal request failed", e) from e
        return response

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.get(path, params)
        try:
            return response.json()
        except ValueError as e:
            raise PortalError(f"Portal returned invalid JSON for {path}", e) from e

    async def get_page(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """GET an HTML page and return its text."""
        response = await self.get(path, params)
        return response.text

    async def whoami(self) -> Dict[str, Any]:
        """Identity of the logged-in user."""
        return await self.get_json(self.selectors.endpoints.whoami)

    async def schools(self, version: Optional[str] = None) -> Dict[str, Any]:
        """
        School directory keyed by school id.

        Args:
            version: Portal edition filter ("cz" or "sk")
        """
        params = {"verze": version} if version else None
        return await self.get_json(self.selectors.endpoints.schools, params)

    async def index_page(self) -> str:
        """Index page with the pending lessons table."""
        return await self.get_page(self.selectors.endpoints.index)

    async def students_page(self) -> str:
        return await self.get_page(self.selectors.endpoints.students)

    async def staff_page(self) -> str:
        """Staff list with all rows on one page and name columns shown."""
        return await self.get_page(self.selectors.endpoints.staff, {
            "pocet_zaznamu_na_jedne_strane": "vsechny",
            "zobrazit_sloupce": "ano",
            "zobrazit_prijmeni": "ano",
            "zobrazit_jmeno": "ano",
        })

    async def staff_documents_page(self, teacher_id: int) -> str:
        return await self.get_page(self.selectors.endpoints.staff_documents, {
            "id_zamestnance": teacher_id,
        })

    async def class_log_page(self, student_id: int, class_id: int) -> str:
        return await self.get_page(self.selectors.endpoints.class_log, {
            "id_zaka": student_id,
            "id_tridni_knihy": class_id,
        })

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self.http.aclose()
