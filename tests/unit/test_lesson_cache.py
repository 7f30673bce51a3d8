"""
Unit tests for the pending lessons cache and background refresh.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, Mock, patch

import pytest

from izus.drive.interfaces import DriveClient
from izus.models.lesson import DriveFile, Lesson, Student
from izus.services.lessons import LessonCache, LessonRefresher, open_lesson
from izus.utils.errors import InputError, PortalError


INDEX_HTML = """
<table class="tridni_kniha"><tbody>
  <tr><th>Datum</th><th>Žák</th></tr>
  <tr><td class="datum_vyuky">5. 3. 2024</td><td class="prijmeni">Novák Jan</td>
      <td class="zapsat"><button href="/zapis/?id=1">Zapsat</button></td></tr>
  <tr><td class="datum_vyuky">6. 3. 2024</td><td class="prijmeni">Svoboda Petr</td>
      <td class="zapsat"><button href="/zapis/?id=2">Zapsat</button></td></tr>
  <tr><td class="datum_vyuky">7. 3. 2024</td><td class="prijmeni">Novák Jan</td>
      <td class="zapsat"><button href="/zapis/?id=3">Zapsat</button></td></tr>
</tbody></table>
"""


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class FakeDrive(DriveClient):
    """In-memory drive: root folder with one folder per student."""

    def __init__(self, images: Dict[str, List[DriveFile]]):
        self.images = images
        self.calls: List[Optional[str]] = []

    @property
    def root_folder_id(self) -> str:
        return "root"

    async def list_files(self, folder_id=None):
        self.calls.append(folder_id)
        if folder_id == "root":
            return [DriveFile(id=f"folder:{name}", name=name) for name in self.images]
        return list(self.images[folder_id[len("folder:"):]])

    async def get_file(self, file_id):
        return b"image-bytes"

    async def create_folder(self, name, parent_id=None):
        self.images.setdefault(name, [])
        return DriveFile(id=f"folder:{name}", name=name)


@pytest.fixture
def client():
    client = Mock()
    client.index_page = AsyncMock(return_value=INDEX_HTML)
    client.is_logged_in = True
    client.session.is_active.return_value = True
    return client


@pytest.fixture
def drive():
    return FakeDrive({"Novák Jan": [], "Dvořák Adam": []})


class TestLessonCache:
    """Test suite for LessonCache."""

    def test_cached_list_is_identical(self, client, drive):
        """Test two fetches without refresh return the same list object."""
        cache = LessonCache(client, drive)

        async def scenario():
            return await cache.get_pending_lessons(), await cache.get_pending_lessons()

        first, second = asyncio.run(scenario())

        assert first is second
        assert client.index_page.await_count == 1

    def test_force_refresh_fetches_again(self, client, drive):
        cache = LessonCache(client, drive)

        async def scenario():
            first = await cache.get_pending_lessons()
            second = await cache.get_pending_lessons(force_refresh=True)
            return first, second

        first, second = asyncio.run(scenario())

        assert first is not second
        assert client.index_page.await_count == 2
        assert cache.lessons is second

    def test_concurrent_callers_share_fetch(self, client, drive):
        """Test in-flight fetch coalescing."""
        async def slow_index():
            await asyncio.sleep(0.01)
            return INDEX_HTML

        client.index_page = AsyncMock(side_effect=slow_index)
        cache = LessonCache(client, drive)

        async def scenario():
            return await asyncio.gather(
                cache.get_pending_lessons(),
                cache.get_pending_lessons(),
                cache.get_pending_lessons(force_refresh=True),
            )

        results = asyncio.run(scenario())

        assert client.index_page.await_count == 1
        assert results[0] is results[1] is results[2]

    def test_failed_fetch_clears_pending(self, client, drive):
        client.index_page = AsyncMock(side_effect=[PortalError("Portal request failed"), INDEX_HTML])
        cache = LessonCache(client, drive)

        async def scenario():
            with pytest.raises(PortalError):
                await cache.get_pending_lessons()
            return await cache.get_pending_lessons()

        lessons = asyncio.run(scenario())

        assert len(lessons) == 3

    def test_student_folders_listed_once(self, client, drive):
        """Test one root listing and one listing per distinct student folder."""
        cache = LessonCache(client, drive)

        lessons = asyncio.run(cache.get_pending_lessons())

        assert drive.calls.count("root") == 1
        assert drive.calls.count("folder:Novák Jan") == 1
        assert lessons[0].student.folder_id == "folder:Novák Jan"
        assert lessons[1].student.folder_id is None
        assert lessons[1].student.images is None

    def test_image_matched_with_offset(self, client):
        """Test the time offset moves a late upload onto the lesson date."""
        late_upload = DriveFile(id="a.jpg", name="a.jpg", created_time=utc(2024, 3, 4, 23, 30))
        other_day = DriveFile(id="b.jpg", name="b.jpg", created_time=utc(2024, 3, 9, 10, 0))
        drive = FakeDrive({"Novák Jan": [other_day, late_upload]})
        cache = LessonCache(client, drive, image_time_offset=timedelta(hours=1))

        lessons = asyncio.run(cache.get_pending_lessons())

        assert lessons[0].image is late_upload
        assert lessons[0].is_openable
        assert lessons[2].image is None

    def test_image_without_offset(self, client):
        late_upload = DriveFile(id="a.jpg", name="a.jpg", created_time=utc(2024, 3, 4, 23, 30))
        drive = FakeDrive({"Novák Jan": [late_upload]})
        cache = LessonCache(client, drive, image_time_offset=timedelta(0))

        lessons = asyncio.run(cache.get_pending_lessons())

        assert lessons[0].image is None

    def test_lesson_changed_reported_once(self, client):
        """Test a newly uploaded image is reported exactly once."""
        drive = FakeDrive({"Novák Jan": []})
        cache = LessonCache(client, drive)

        async def scenario():
            await cache.get_pending_lessons()
            changed_before = cache.is_lesson_changed()

            drive.images["Novák Jan"].append(
                DriveFile(id="a.jpg", name="a.jpg", created_time=utc(2024, 3, 7, 9, 0))
            )
            await cache.get_pending_lessons(force_refresh=True)
            return changed_before, cache.is_lesson_changed(), cache.is_lesson_changed()

        changed_before, first, second = asyncio.run(scenario())

        assert changed_before is False
        assert first is True
        assert second is False

    def test_unchanged_refresh_not_reported(self, client):
        image = DriveFile(id="a.jpg", name="a.jpg", created_time=utc(2024, 3, 5, 9, 0))
        drive = FakeDrive({"Novák Jan": [image]})
        cache = LessonCache(client, drive)

        async def scenario():
            await cache.get_pending_lessons()
            await cache.get_pending_lessons(force_refresh=True)
            return cache.is_lesson_changed()

        assert asyncio.run(scenario()) is False

    def test_get_changed_lesson(self):
        image = DriveFile(id="a.jpg", name="a.jpg")
        student = Student(first_name="Jan", last_name="Novák")
        old = [Lesson(index=0, date=date(2024, 3, 5), student=student)]
        new = [
            Lesson(index=0, date=date(2024, 3, 5), student=student, image=image),
            Lesson(index=1, date=date(2024, 3, 6), student=student, image=image),
        ]

        assert LessonCache.get_changed_lesson(new, old) is new[0]
        assert LessonCache.get_changed_lesson(new, new) is None

    def test_invalidate_drops_in_flight_result(self, client, drive):
        """Test a fetch started before invalidation does not fill the cache."""
        async def slow_index():
            await asyncio.sleep(0.01)
            return INDEX_HTML

        client.index_page = AsyncMock(side_effect=slow_index)
        cache = LessonCache(client, drive)

        async def scenario():
            task = asyncio.ensure_future(cache.get_pending_lessons())
            await asyncio.sleep(0)
            cache.invalidate()
            lessons = await task
            return lessons, cache.lessons

        lessons, cached = asyncio.run(scenario())

        assert len(lessons) == 3
        assert cached is None

    def test_get_students(self, client, drive):
        client.students_page = AsyncMock(return_value="""
            <div id="zarazeni_zaci"><table><tbody>
              <tr><td class="prijmeni">Novák</td><td>Jan</td></tr>
            </tbody></table></div>
        """)
        cache = LessonCache(client, drive)

        students = asyncio.run(cache.get_students())

        assert [(s.last_name, s.first_name) for s in students] == [("Novák", "Jan")]


class TestLessonRefresher:
    """Test suite for LessonRefresher."""

    def test_refresh_once(self, client, drive):
        cache = LessonCache(client, drive)
        refresher = LessonRefresher(cache, client, interval=10)

        assert asyncio.run(refresher.refresh_once()) is True
        assert cache.lessons is not None

    def test_refresh_requires_login(self, client, drive):
        client.is_logged_in = False
        client.session.is_active.return_value = False
        cache = LessonCache(client, drive)
        refresher = LessonRefresher(cache, client, interval=10)

        assert asyncio.run(refresher.refresh_once()) is False
        client.index_page.assert_not_awaited()

    def test_logged_failure_is_displayed(self, client, drive, capsys):
        client.is_logged_in = False
        client.session.is_active.return_value = False
        refresher = LessonRefresher(LessonCache(client, drive), client, log_refresh=True)

        asyncio.run(refresher.refresh_once())

        assert "Lesson refresh failed" in capsys.readouterr().out

    def test_expired_session_logs_in_again(self, client, drive, caplog):
        """Test an expired token is renewed before the refresh."""
        client.session.is_active.return_value = False
        login = AsyncMock()
        cache = LessonCache(client, drive)
        refresher = LessonRefresher(cache, client, interval=10, login=login)

        assert asyncio.run(refresher.refresh_once()) is True
        login.assert_awaited_once()
        client.index_page.assert_awaited_once()
        assert "session expired" in caplog.text

    def test_expired_session_without_login(self, client, drive, capsys):
        client.session.is_active.return_value = False
        refresher = LessonRefresher(LessonCache(client, drive), client, log_refresh=True)

        assert asyncio.run(refresher.refresh_once()) is False
        assert "Portal session expired" in capsys.readouterr().out
        client.index_page.assert_not_awaited()

    def test_failed_login_is_swallowed(self, client, drive):
        client.is_logged_in = False
        client.session.is_active.return_value = False
        login = AsyncMock(side_effect=PortalError("Login failed"))
        refresher = LessonRefresher(LessonCache(client, drive), client, login=login)

        assert asyncio.run(refresher.refresh_once()) is False
        client.index_page.assert_not_awaited()

    def test_loop_survives_failures(self, client, drive):
        """Test failures never stop the refresh loop."""
        client.index_page = AsyncMock(side_effect=PortalError("Portal request failed"))
        cache = LessonCache(client, drive)
        refresher = LessonRefresher(cache, client, interval=0.01)

        async def scenario():
            refresher.start()
            await asyncio.sleep(0.1)
            running = refresher.is_running
            await refresher.stop()
            return running

        assert asyncio.run(scenario()) is True
        assert client.index_page.await_count >= 2
        assert not refresher.is_running


class TestOpenLesson:
    """Test suite for opening a lesson."""

    def test_not_openable(self, drive, tmp_path):
        lesson = Lesson(index=4, date=date(2024, 3, 5), student=Student("Jan", "Novák"))

        with pytest.raises(InputError, match="Lesson 5"):
            asyncio.run(open_lesson(lesson, drive, "https://www.izus.cz/", tmp_path))

    def test_opens_link_and_image(self, drive, tmp_path):
        image = DriveFile(id="folder:Novák Jan/a.jpg", name="a.jpg")
        lesson = Lesson(
            index=0,
            date=date(2024, 3, 5),
            student=Student("Jan", "Novák"),
            link="/zapis/?id=1",
            image=image,
        )

        with patch("izus.services.lessons.webbrowser.open") as mock_open:
            path = asyncio.run(open_lesson(lesson, drive, "https://www.izus.cz/", tmp_path / "images"))

        assert path == tmp_path / "images" / "a.jpg"
        assert path.read_bytes() == b"image-bytes"
        assert mock_open.call_args_list[0].args[0] == "https://www.izus.cz/zapis/?id=1"
        assert mock_open.call_args_list[1].args[0].startswith("file://")
