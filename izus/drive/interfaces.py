"""
Abstract interface for drive access.

The lesson cache depends on this interface rather than a concrete storage
service, which keeps it testable with mocks.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.lesson import DriveFile


class DriveClient(ABC):
    """
    Abstract interface for listing and downloading drive files.

    The root folder holds one folder per student, named
    "<last name> <first name>", each containing uploaded notebook images.
    """

    @property
    @abstractmethod
    def root_folder_id(self) -> str:
        """Identifier of the folder that holds the student folders."""

    @abstractmethod
    async def list_files(self, folder_id: Optional[str] = None) -> List[DriveFile]:
        """
        List files and folders directly inside a folder.

        Args:
            folder_id: Folder to list (root folder when None)

        Returns:
            Files with their creation time
        """

    @abstractmethod
    async def get_file(self, file_id: str) -> bytes:
        """
        Download file content.

        Args:
            file_id: File identifier from ``list_files``
        """

    @abstractmethod
    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> DriveFile:
        """
        Create a folder, or return it when it already exists.

        Args:
            name: Folder name
            parent_id: Parent folder (root folder when None)
        """


__all__ = ["DriveClient", "DriveFile"]
