"""
Drive access for uploaded notebook images.

Usage:
    >>> from izus.drive import LocalDrive
    >>> drive = LocalDrive(Path("drive"))
    >>> folders = await drive.list_files()
"""

from .interfaces import DriveClient, DriveFile
from .local import LocalDrive

__all__ = [
    "DriveClient",
    "DriveFile",
    "LocalDrive",
]
