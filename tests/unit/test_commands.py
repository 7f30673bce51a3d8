"""
Unit tests for the application context and commands.

The portal client is mocked; the drive is a local folder.
"""

import asyncio
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from izus import commands
from izus.context import AppContext
from izus.models.account import Credentials
from izus.utils.config import Config, SecureString
from izus.utils.errors import CredentialsError, InputError, PortalError


INDEX_HTML = """
<table class="tridni_kniha"><tbody>
  <tr><th>Datum</th></tr>
  <tr><td class="datum_vyuky">5. 3. 2024</td><td class="prijmeni">Novák Jan</td>
      <td class="zapsat"><button href="/zapis/?id=1">Zapsat</button></td></tr>
  <tr><td class="datum_vyuky">6. 3. 2024</td><td class="prijmeni">Svoboda Petr</td>
      <td class="zapsat"><button href="/zapis/?id=2">Zapsat</button></td></tr>
</tbody></table>
"""

STUDENTS_HTML = """
<div id="zarazeni_zaci"><table><tbody>
  <tr><td class="prijmeni">Novák</td><td>Jan</td></tr>
  <tr><td class="prijmeni">Svoboda</td><td>Petr</td></tr>
</tbody></table></div>
"""

STAFF_HTML = """
<table id="tabulka_zamestnancu"><tbody>
  <tr><td class="prijmeni"><input name="zamestnanci[]" value="1">Adámek</td><td>Karel</td></tr>
</tbody></table>
"""


@pytest.fixture
def config(monkeypatch, tmp_path):
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "output"))
    monkeypatch.setenv("DRIVE_ROOT", str(tmp_path / "drive"))
    monkeypatch.setenv("IZUS_USERNAME", "novak.jan")
    monkeypatch.setenv("IZUS_PASSWORD", "secret")
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("STATS_DELAY", "0")
    return Config()


@pytest.fixture
def drive_root(config):
    folder = config.drive_root / "Novák Jan"
    folder.mkdir(parents=True)
    image = folder / "sešit.jpg"
    image.write_bytes(b"jpeg")
    stamp = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc).timestamp()
    os.utime(image, (stamp, stamp))
    return config.drive_root


@pytest.fixture
def client():
    client = Mock()
    client.session.is_active.return_value = True
    client.is_logged_in = True
    client.login = AsyncMock()
    client.logout = AsyncMock()
    client.aclose = AsyncMock()
    client.index_page = AsyncMock(return_value=INDEX_HTML)
    client.students_page = AsyncMock(return_value=STUDENTS_HTML)
    client.staff_page = AsyncMock(return_value=STAFF_HTML)
    client.staff_documents_page = AsyncMock(return_value="<html></html>")
    client.whoami = AsyncMock(return_value={
        "id": 1, "userName": "Jan Novák", "role": 5, "id_skoly": 1234,
    })
    return client


@pytest.fixture
def ctx(config, client, drive_root):
    return AppContext(config, client=client)


class TestAppContext:
    """Test suite for AppContext."""

    def test_call_logs_in_when_inactive(self, ctx, client):
        client.session.is_active.return_value = False

        result = asyncio.run(ctx.call(client.index_page))

        assert result == INDEX_HTML
        credentials = client.login.await_args.args[0]
        assert credentials.username == "novak.jan"
        assert credentials.password == SecureString("secret")

    def test_call_without_credentials(self, ctx, client):
        client.session.is_active.return_value = False
        ctx.credentials.forget()

        with pytest.raises(CredentialsError):
            asyncio.run(ctx.call(client.index_page))

    def test_call_wraps_http_errors(self, ctx):
        async def failing():
            raise httpx.ConnectError("unreachable")

        with pytest.raises(PortalError):
            asyncio.run(ctx.call(failing))

    def test_change_login_invalidates(self, ctx, client):
        async def scenario():
            lessons = await ctx.lessons.get_pending_lessons()
            await ctx.change_login(Credentials("svoboda.petr", SecureString("other")))
            return lessons

        asyncio.run(scenario())

        client.logout.assert_awaited_once()
        assert ctx.lessons.lessons is None
        assert ctx.credentials.username == "svoboda.petr"
        assert ctx.history.entries[-1]["user"] == "svoboda.petr"

    def test_refresher_logs_in_when_inactive(self, ctx, client):
        client.session.is_active.return_value = False

        assert asyncio.run(ctx.refresher.refresh_once()) is True
        client.login.assert_awaited_once()
        assert ctx.lessons.lessons is not None

    def test_close(self, ctx, client):
        asyncio.run(ctx.close())

        client.aclose.assert_awaited_once()


class TestCommands:
    """Test suite for commands."""

    def test_check_login(self, ctx):
        result = asyncio.run(commands.check_login(ctx))

        assert result.is_success
        assert result.value.user_name == "Jan Novák"
        assert result.message == "Logged in as Jan Novák (Employee, Unknown school)"

    def test_check_login_failure_becomes_result(self, ctx, client):
        client.whoami = AsyncMock(side_effect=PortalError("Portal request failed"))

        result = asyncio.run(commands.check_login(ctx))

        assert result.is_failure
        assert result.message == "Portal request failed"

    def test_program_error_propagates(self, ctx, client):
        client.index_page = AsyncMock(side_effect=RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            asyncio.run(commands.get_lessons(ctx))

    def test_forget_login(self, ctx, client):
        result = asyncio.run(commands.forget_login(ctx))

        assert result.is_success
        assert not ctx.credentials.has_credentials()
        client.logout.assert_awaited_once()

    def test_get_lessons_with_image(self, ctx):
        async def scenario():
            return (
                await commands.get_lessons(ctx),
                await commands.get_lessons_with_image(ctx),
            )

        all_lessons, with_image = asyncio.run(scenario())

        assert len(all_lessons.value) == 2
        assert [lesson.index for lesson in with_image.value] == [0]

    def test_open_lesson(self, ctx):
        with patch("izus.services.lessons.webbrowser.open") as mock_open:
            result = asyncio.run(commands.open_lesson(ctx, 0))

        assert result.is_success
        assert mock_open.call_count == 2
        assert (ctx.config.images_dir / "sešit.jpg").read_bytes() == b"jpeg"

    @pytest.mark.parametrize("index", [1, 5, -1])
    def test_open_lesson_invalid_index(self, ctx, index):
        """Test lessons without an image and unknown numbers are input errors."""
        with pytest.raises(InputError):
            asyncio.run(commands.open_lesson(ctx, index))

    def test_get_students(self, ctx):
        result = asyncio.run(commands.get_students(ctx))

        assert [s.last_name for s in result.value] == ["Novák", "Svoboda"]

    def test_create_folders(self, ctx, drive_root):
        result = asyncio.run(commands.create_folders(ctx))

        assert result.is_success
        assert result.value["created_count"] == 2
        assert result.value["failed_count"] == 0
        assert (drive_root / "Svoboda Petr").is_dir()

    def test_get_teacher_similarity_unknown(self, ctx):
        with pytest.raises(InputError):
            asyncio.run(commands.get_teacher_similarity(ctx, 3))

    def test_get_teacher_similarity_without_records(self, ctx):
        result = asyncio.run(commands.get_teacher_similarity(ctx, 0))

        assert result.is_failure
        assert "Similarity cannot be computed" in result.message

    def test_get_teachers_with_similarity(self, ctx):
        result = asyncio.run(commands.get_teachers_with_similarity(ctx))

        assert result.is_success
        assert [t.last_name for t in result.value] == ["Adámek"]
        assert result.value[0].stats.avg_percentile is None

    def test_init_starts_refresh_after_failed_login(self, ctx, client):
        """Test the refresh is started even when the login check fails."""
        client.session.is_active.return_value = False
        client.login = AsyncMock(side_effect=PortalError("Login failed"))

        async def scenario():
            result = await commands.init(ctx)
            running = ctx.refresher.is_running
            await ctx.refresher.stop()
            return result, running

        result, running = asyncio.run(scenario())

        assert result.is_failure
        assert running is True
