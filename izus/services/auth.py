"""
Credentials, identity and login history.

The history file is a JSON array with one entry per portal user id; a new
login of the same user replaces the older entry.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.account import Credentials, Role, School, Whoami
from ..portal.client import IzusClient
from ..utils.config import SecureString
from ..utils.errors import CredentialsError, PortalFormatError, UserError, handle_error
from ..utils.file_utils import load_json, save_json
from ..utils.tables import format_credentials_history


logger = logging.getLogger(__name__)

UNKNOWN_SCHOOL = "Unknown school"
DEFAULT_VERSION = "cz"


class SchoolDirectory:
    """
    School directory of the portal, fetched once per process.

    Examples:
        >>> schools = SchoolDirectory(client)
        >>> school = await schools.get_school(1234)
        >>> school.name_short
        'ZUŠ Praha 1'
    """

    def __init__(self, client: IzusClient):
        self.client = client
        self._schools: Optional[Dict[int, School]] = None

    @staticmethod
    def _map_schools(response: Dict[str, Any]) -> Dict[int, School]:
        try:
            return {
                int(school_id): School(
                    school_id=int(item["id_skoly"]),
                    name=item["nazev"],
                    name_short=item["nazev_zkracene"],
                    version=item.get("verze", DEFAULT_VERSION),
                )
                for school_id, item in response.items()
            }
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PortalFormatError("Unexpected school directory response", e) from e

    async def get_schools(self, version: Optional[str] = None) -> Dict[int, School]:
        """
        Schools keyed by id.

        Args:
            version: Portal edition filter; filtered lists are not cached
        """
        if version:
            return self._map_schools(await self.client.schools(version))
        if self._schools is None:
            self._schools = self._map_schools(await self.client.schools())
        return self._schools

    async def get_school(self, school_id: int) -> School:
        """
        Raises:
            UserError: If the school id is unknown
        """
        schools = await self.get_schools()
        if school_id not in schools:
            raise UserError("Unknown school")
        return schools[school_id]


async def get_whoami(client: IzusClient, user: str, schools: SchoolDirectory) -> Whoami:
    """
    Identity of the logged-in user.

    The school is resolved only for full administrators; other users get
    the "Unknown school" label.
    """
    response = await client.whoami()
    try:
        role = int(response["role"])
        school_id = int(response["id_skoly"])
        user_id = int(response["id"])
        user_name = response["userName"]
    except (KeyError, TypeError, ValueError) as e:
        raise PortalFormatError("Unexpected whoami response", e) from e

    school = (
        await schools.get_school(school_id)
        if role == Role.FULL_ADMIN.value
        else UNKNOWN_SCHOOL
    )

    return Whoami(
        id=user_id,
        user=user,
        user_name=user_name,
        school=school,
        admin=bool(response.get("admin", False)),
        role=role,
        role_name=Role.name_of(role),
    )


def whoami_to_entry(whoami: Whoami, last_login: datetime) -> Dict[str, Any]:
    """History entry of a login."""
    school: Any = whoami.school
    if isinstance(school, School):
        school = {
            "schoolId": school.school_id,
            "name": school.name,
            "nameShort": school.name_short,
            "version": school.version,
        }
    return {
        "id": whoami.id,
        "user": whoami.user,
        "userName": whoami.user_name,
        "school": school,
        "admin": whoami.admin,
        "role": whoami.role,
        "roleName": whoami.role_name,
        "lastLogin": last_login.isoformat(timespec="seconds"),
    }


class CredentialsHistory:
    """
    Login history persisted as a JSON array.

    Examples:
        >>> history = CredentialsHistory(Path("output/auth/credentials-history.json"))
        >>> history.add(whoami)
        >>> [entry["userName"] for entry in history.entries]
        ['Jan Novák']
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: List[Dict[str, Any]] = []
        self.load()

    def load(self):
        """Load the history; an unusable file is reported and ignored."""
        if not self.path.exists():
            logger.debug(f"No credentials history yet: {self.path}")
            self._entries = []
            return

        data = load_json(self.path)
        if isinstance(data, list):
            self._entries = data
        else:
            self._entries = []
            handle_error(UserError(f"Credentials history file is corrupted: {self.path}"))

    @property
    def entries(self) -> List[Dict[str, Any]]:
        """Entries from the oldest to the latest login."""
        return list(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def add(self, whoami: Whoami, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Record a login, replacing an earlier entry of the same user id."""
        entry = whoami_to_entry(whoami, now or datetime.now())
        self._entries = [item for item in self._entries if item.get("id") != whoami.id]
        self._entries.append(entry)
        self.save()
        return entry

    def save(self) -> bool:
        return save_json(self._entries, self.path)

    def format(self) -> str:
        return format_credentials_history(self._entries)


class CredentialsManager:
    """
    Current credentials and the identity they resolve to.

    Examples:
        >>> manager = CredentialsManager(history, schools, "novak.jan", SecureString("secret"))
        >>> await manager.check_credentials(client)
        >>> (await manager.get_whoami(client)).role_name
        'Employee'
    """

    def __init__(
        self,
        history: CredentialsHistory,
        schools: SchoolDirectory,
        username: Optional[str] = None,
        password: Optional[SecureString] = None
    ):
        self.history = history
        self.schools = schools
        self.username = username
        self.password = password
        self.whoami: Optional[Whoami] = None

    def has_credentials(self) -> bool:
        return bool(self.username) and self.password is not None

    def get(self) -> Credentials:
        """
        Raises:
            CredentialsError: If username or password is missing
        """
        if not self.has_credentials():
            raise CredentialsError(
                "Login credentials are missing. "
                "Set IZUS_USERNAME and IZUS_PASSWORD or use --username and --password"
            )
        return Credentials(username=self.username, password=self.password)

    def set(self, credentials: Credentials):
        self.username = credentials.username
        self.password = credentials.password
        self.whoami = None

    def forget(self):
        self.username = None
        self.password = None
        self.whoami = None

    async def check_credentials(self, client: IzusClient) -> bool:
        """Resolve the identity of the logged-in user and record the login."""
        credentials = self.get()
        self.whoami = await get_whoami(client, credentials.username, self.schools)
        self.history.add(self.whoami)
        return True

    async def get_whoami(self, client: IzusClient) -> Whoami:
        if self.whoami is None:
            await self.check_credentials(client)
        return self.whoami
