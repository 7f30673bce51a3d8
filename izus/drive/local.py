"""
Drive backed by a local folder.

Useful with a synced cloud folder: every student folder is a directory
below the root and file ids are paths relative to the root.
"""

import asyncio
import logging
import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .interfaces import DriveClient, DriveFile


logger = logging.getLogger(__name__)


class LocalDrive(DriveClient):
    """
    DriveClient over a directory tree.

    Examples:
        >>> drive = LocalDrive(Path("drive"))
        >>> folders = await drive.list_files()
        >>> images = await drive.list_files(folders[0].id)
    """

    FOLDER_MIME_TYPE = "application/vnd.folder"

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def root_folder_id(self) -> str:
        return "."

    def _resolve(self, file_id: str) -> Path:
        path = (self.root / file_id).resolve()
        root = self.root.resolve()
        if path != root and root not in path.parents:
            raise ValueError(f"File id outside of drive root: {file_id}")
        return path

    def _list(self, folder_id: str) -> List[DriveFile]:
        folder = self._resolve(folder_id)
        if not folder.is_dir():
            logger.warning(f"Drive folder not found: {folder}")
            return []

        files = []
        for path in sorted(folder.iterdir()):
            stat = path.stat()
            mime_type = (
                self.FOLDER_MIME_TYPE if path.is_dir()
                else mimetypes.guess_type(path.name)[0]
            )
            files.append(DriveFile(
                id=path.relative_to(self.root.resolve()).as_posix(),
                name=path.name,
                created_time=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                mime_type=mime_type,
            ))
        return files

    async def list_files(self, folder_id: Optional[str] = None) -> List[DriveFile]:
        return await asyncio.to_thread(self._list, folder_id or self.root_folder_id)

    async def get_file(self, file_id: str) -> bytes:
        return await asyncio.to_thread(self._resolve(file_id).read_bytes)

    def _mkdir(self, name: str, parent_id: str) -> DriveFile:
        path = self._resolve(f"{parent_id}/{name}")
        path.mkdir(parents=True, exist_ok=True)
        return DriveFile(
            id=path.relative_to(self.root.resolve()).as_posix(),
            name=path.name,
            created_time=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
            mime_type=self.FOLDER_MIME_TYPE,
        )

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> DriveFile:
        folder = await asyncio.to_thread(self._mkdir, name, parent_id or self.root_folder_id)
        logger.debug(f"Drive folder ready: {folder.id}")
        return folder
