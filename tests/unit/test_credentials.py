"""
Unit tests for credentials, identity and login history.
"""

import asyncio
import json
from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytest

from izus.models.account import Credentials, School, Whoami
from izus.services.auth import (
    UNKNOWN_SCHOOL,
    CredentialsHistory,
    CredentialsManager,
    SchoolDirectory,
    get_whoami,
    whoami_to_entry,
)
from izus.utils.config import SecureString
from izus.utils.errors import CredentialsError, PortalFormatError, UserError


SCHOOLS_RESPONSE = {
    "1234": {"id_skoly": "1234", "nazev": "ZUŠ Praha 1", "nazev_zkracene": "ZUŠ P1", "verze": "cz"},
}


def make_whoami(user_id=1, user="novak.jan", school=UNKNOWN_SCHOOL):
    return Whoami(
        id=user_id,
        user=user,
        user_name="Jan Novák",
        school=school,
        admin=False,
        role=5,
        role_name="Employee",
    )


@pytest.fixture
def client():
    client = Mock()
    client.schools = AsyncMock(return_value=SCHOOLS_RESPONSE)
    client.whoami = AsyncMock(return_value={
        "id": "1", "userName": "Jan Novák", "role": "5", "id_skoly": "1234", "admin": False,
    })
    return client


class TestSchoolDirectory:
    """Test suite for SchoolDirectory."""

    def test_get_school_cached(self, client):
        schools = SchoolDirectory(client)

        async def scenario():
            first = await schools.get_school(1234)
            await schools.get_school(1234)
            return first

        school = asyncio.run(scenario())

        assert school == School(school_id=1234, name="ZUŠ Praha 1", name_short="ZUŠ P1")
        assert client.schools.await_count == 1

    def test_unknown_school(self, client):
        with pytest.raises(UserError, match="Unknown school"):
            asyncio.run(SchoolDirectory(client).get_school(9))

    def test_bad_response(self, client):
        client.schools = AsyncMock(return_value={"1": "not a school"})

        with pytest.raises(PortalFormatError):
            asyncio.run(SchoolDirectory(client).get_schools())


class TestGetWhoami:
    """Test cases for identity resolution."""

    def test_employee_school_unresolved(self, client):
        whoami = asyncio.run(get_whoami(client, "novak.jan", SchoolDirectory(client)))

        assert whoami.id == 1
        assert whoami.role_name == "Employee"
        assert whoami.school == UNKNOWN_SCHOOL
        assert whoami.school_name == UNKNOWN_SCHOOL
        client.schools.assert_not_awaited()

    def test_full_admin_school_resolved(self, client):
        client.whoami.return_value = {
            "id": 2, "userName": "Admin", "role": 9, "id_skoly": 1234, "admin": True,
        }

        whoami = asyncio.run(get_whoami(client, "admin", SchoolDirectory(client)))

        assert whoami.school_name == "ZUŠ P1"
        assert whoami.role_name == "Full admin"
        assert whoami.admin is True

    def test_bad_response(self, client):
        client.whoami.return_value = {"error": "unauthorized"}

        with pytest.raises(PortalFormatError):
            asyncio.run(get_whoami(client, "novak.jan", SchoolDirectory(client)))


class TestCredentialsHistory:
    """Test suite for CredentialsHistory."""

    def test_missing_file_starts_empty(self, tmp_path):
        history = CredentialsHistory(tmp_path / "history.json")

        assert history.is_empty()

    def test_add_replaces_same_user(self, tmp_path):
        """Test one entry per user id, latest login last."""
        path = tmp_path / "auth" / "history.json"
        history = CredentialsHistory(path)

        history.add(make_whoami(1), now=datetime(2024, 3, 5, 10, 0))
        history.add(make_whoami(2, user="svoboda.petr"), now=datetime(2024, 3, 6, 10, 0))
        history.add(make_whoami(1), now=datetime(2024, 3, 7, 10, 0))

        assert [entry["id"] for entry in history.entries] == [2, 1]
        assert history.entries[-1]["lastLogin"] == "2024-03-07T10:00:00"

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved == history.entries
        assert [entry["id"] for entry in CredentialsHistory(path).entries] == [2, 1]

    def test_school_entry(self):
        school = School(school_id=1234, name="ZUŠ Praha 1", name_short="ZUŠ P1")

        entry = whoami_to_entry(make_whoami(school=school), datetime(2024, 3, 5, 10, 0))

        assert entry["school"] == {
            "schoolId": 1234, "name": "ZUŠ Praha 1", "nameShort": "ZUŠ P1", "version": "cz",
        }
        assert entry["userName"] == "Jan Novák"
        assert entry["roleName"] == "Employee"

    def test_corrupted_file(self, tmp_path, capsys):
        path = tmp_path / "history.json"
        path.write_text("{not json", encoding="utf-8")

        history = CredentialsHistory(path)

        assert history.is_empty()
        assert "corrupted" in capsys.readouterr().out

    def test_format_latest_first(self, tmp_path):
        history = CredentialsHistory(tmp_path / "history.json")
        history.add(make_whoami(1, user="novak.jan"), now=datetime(2024, 3, 5, 10, 0))
        history.add(make_whoami(2, user="svoboda.petr"), now=datetime(2024, 3, 6, 10, 0))

        table = history.format()

        assert table.index("svoboda.petr") < table.index("novak.jan")
        assert "Last login ↓" in table


class TestCredentialsManager:
    """Test suite for CredentialsManager."""

    @pytest.fixture
    def history(self, tmp_path):
        return CredentialsHistory(tmp_path / "history.json")

    def test_missing_credentials(self, client, history):
        manager = CredentialsManager(history, SchoolDirectory(client))

        assert not manager.has_credentials()
        with pytest.raises(CredentialsError):
            manager.get()

    def test_set_and_forget(self, client, history):
        manager = CredentialsManager(history, SchoolDirectory(client))
        manager.set(Credentials(username="novak.jan", password=SecureString("secret")))

        assert manager.get().username == "novak.jan"

        manager.forget()
        assert not manager.has_credentials()

    def test_check_credentials_records_login(self, client, history):
        manager = CredentialsManager(
            history, SchoolDirectory(client), "novak.jan", SecureString("secret")
        )

        async def scenario():
            await manager.check_credentials(client)
            return await manager.get_whoami(client)

        whoami = asyncio.run(scenario())

        assert whoami.user == "novak.jan"
        assert client.whoami.await_count == 1
        assert [entry["user"] for entry in history.entries] == ["novak.jan"]
