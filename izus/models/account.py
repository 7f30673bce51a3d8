"""
Account data models.

Portal credentials, the identity returned by the whoami endpoint and the
school directory entries.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from ..utils.config import SecureString


class Role(Enum):
    """Portal user roles."""

    STUDENT = 1
    LEGAL_GUARDIAN = 3
    EMPLOYEE = 5
    EXECUTIVE = 7
    SCHOOL_ADMIN = 8
    FULL_ADMIN = 9

    @classmethod
    def name_of(cls, role: int) -> str:
        """
        Get display name of a role code.

        Examples:
            >>> Role.name_of(5)
            'Employee'
            >>> Role.name_of(2)
            'Other'
        """
        try:
            return cls(role).name.replace("_", " ").capitalize()
        except ValueError:
            return "Other"


@dataclass
class Credentials:
    """Username and password used to log in."""

    username: str
    password: SecureString


@dataclass
class School:
    """
    School directory entry.

    Attributes:
        school_id: Portal school identifier
        name: Full school name
        name_short: Short school name
        version: Portal edition ("cz" or "sk")
    """

    school_id: int
    name: str
    name_short: str
    version: str = "cz"


@dataclass
class Whoami:
    """
    Identity of the logged-in user.

    Attributes:
        id: Portal user id
        user: Login name
        user_name: Display name
        school: School entry, or a plain label when unresolved
        admin: Whether the user is an administrator
        role: Role code
        role_name: Role display name
    """

    id: int
    user: str
    user_name: str
    school: Union[School, str]
    admin: bool
    role: int
    role_name: str

    @property
    def school_name(self) -> str:
        """Short school name, or the label when the school is unresolved."""
        if isinstance(self.school, str):
            return self.school
        return self.school.name_short
