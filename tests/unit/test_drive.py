"""
Unit tests for the local folder drive.
"""

import asyncio
import os
from datetime import datetime, timezone

import pytest

from izus.drive import LocalDrive


@pytest.fixture
def drive(tmp_path):
    student = tmp_path / "Novák Jan"
    student.mkdir()
    image = student / "sešit.jpg"
    image.write_bytes(b"jpeg")
    stamp = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc).timestamp()
    os.utime(image, (stamp, stamp))
    return LocalDrive(tmp_path)


class TestLocalDrive:
    """Test suite for LocalDrive."""

    def test_list_root(self, drive):
        folders = asyncio.run(drive.list_files())

        assert [(f.id, f.name, f.mime_type) for f in folders] == [
            ("Novák Jan", "Novák Jan", LocalDrive.FOLDER_MIME_TYPE),
        ]

    def test_list_folder(self, drive):
        files = asyncio.run(drive.list_files("Novák Jan"))

        assert len(files) == 1
        assert files[0].id == "Novák Jan/sešit.jpg"
        assert files[0].mime_type == "image/jpeg"
        assert files[0].created_time == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)

    def test_missing_folder(self, drive):
        assert asyncio.run(drive.list_files("Svoboda Petr")) == []

    def test_get_file(self, drive):
        assert asyncio.run(drive.get_file("Novák Jan/sešit.jpg")) == b"jpeg"

    def test_outside_root_rejected(self, drive):
        with pytest.raises(ValueError):
            asyncio.run(drive.get_file("../secret.txt"))

    def test_create_folder(self, drive, tmp_path):
        folder = asyncio.run(drive.create_folder("Svoboda Petr"))

        assert folder.id == "Svoboda Petr"
        assert (tmp_path / "Svoboda Petr").is_dir()

        again = asyncio.run(drive.create_folder("Svoboda Petr"))
        assert again.id == folder.id
