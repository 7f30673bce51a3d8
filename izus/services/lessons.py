"""
Pending lessons cache and background refresh.

The cache keeps the latest snapshot of pending lessons scraped from the
portal index page, with notebook images from the drive attached. Callers
that ask while a fetch is running share that fetch. Comparing consecutive
snapshots reveals a lesson whose notebook image has just been uploaded.
"""

import asyncio
import logging
import webbrowser
from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from ..drive.interfaces import DriveClient
from ..models.lesson import DriveFile, Lesson, Student, lessons_with_image
from ..portal import parsers
from ..portal.client import IzusClient
from ..utils.errors import InputError, UserError, handle_error
from ..utils.names import get_name


logger = logging.getLogger(__name__)


class LessonCache:
    """
    Cache of pending lessons.

    Examples:
        >>> cache = LessonCache(client, drive)
        >>> lessons = await cache.get_pending_lessons()
        >>> lessons is await cache.get_pending_lessons()
        True
        >>> await cache.get_pending_lessons(force_refresh=True)
        >>> if cache.is_lesson_changed():
        ...     print("A notebook image was uploaded")
    """

    def __init__(
        self,
        client: IzusClient,
        drive: DriveClient,
        image_time_offset: timedelta = timedelta(hours=1)
    ):
        """
        Initialize LessonCache.

        Args:
            client: Portal client
            drive: Drive with one image folder per student
            image_time_offset: Added to an image's creation time before its
                date is compared with the lesson date
        """
        self.client = client
        self.drive = drive
        self.image_time_offset = image_time_offset

        self._lessons: Optional[List[Lesson]] = None
        self._previous: Optional[List[Lesson]] = None
        self._changed: Optional[Lesson] = None
        self._pending: Optional[asyncio.Future] = None
        self._generation = 0

    @property
    def lessons(self) -> Optional[List[Lesson]]:
        """Latest snapshot, None before the first fetch."""
        return self._lessons

    def invalidate(self):
        """
        Drop everything cached.

        A fetch already in flight still completes for its callers but no
        longer updates the cache.
        """
        self._generation += 1
        self._lessons = None
        self._previous = None
        self._changed = None
        self._pending = None
        logger.debug("Lesson cache invalidated")

    async def get_pending_lessons(self, force_refresh: bool = False) -> List[Lesson]:
        """
        Get pending lessons.

        Args:
            force_refresh: Fetch again even when a snapshot is cached

        Returns:
            The cached snapshot (same list object) unless a fetch was needed
        """
        if self._lessons is not None and not force_refresh:
            return self._lessons

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._fetch(self._generation))

        # A cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(self._pending)

    async def _fetch(self, generation: int) -> List[Lesson]:
        try:
            html = await self.client.index_page()
            lessons = parsers.parse_pending_lessons(html)

            await self.add_images_to_students([lesson.student for lesson in lessons])
            self.add_images_to_lessons(lessons)

            if generation == self._generation:
                if self._previous is not None and self._changed is None:
                    self._changed = self.get_changed_lesson(lessons, self._previous)
                    if self._changed is not None:
                        logger.info(
                            f"Lesson changed: {get_name(self._changed.student)} "
                            f"{self._changed.date.isoformat()}"
                        )
                self._previous = lessons
                self._lessons = lessons

            logger.debug(f"Fetched {len(lessons)} pending lessons")
            return lessons

        finally:
            if generation == self._generation:
                self._pending = None

    def is_lesson_changed(self) -> bool:
        """
        Report a detected change once.

        Returns:
            True if a change was detected since the last call
        """
        if self._changed is not None:
            self._changed = None
            return True
        return False

    @staticmethod
    def get_changed_lesson(
        lessons: Sequence[Lesson],
        previous: Sequence[Lesson]
    ) -> Optional[Lesson]:
        """
        First openable lesson that is new or newly imaged.

        Lessons are matched by date and student name.
        """
        for lesson in lessons_with_image(list(lessons)):
            name = get_name(lesson.student)
            match = next(
                (
                    old for old in previous
                    if old.date == lesson.date and get_name(old.student) == name
                ),
                None
            )
            if match is None or match.image is None:
                return lesson
        return None

    async def add_images_to_students(self, students: Sequence[Student]):
        """
        Attach the drive folder and its images to each student.

        The root folder is listed once, then each distinct student folder
        once.
        """
        folders = await self.drive.list_files(self.drive.root_folder_id)
        folder_by_name: Dict[str, DriveFile] = {folder.name: folder for folder in folders}

        names = []
        for student in students:
            name = get_name(student)
            if name in folder_by_name and name not in names:
                names.append(name)

        listings = await asyncio.gather(
            *(self.drive.list_files(folder_by_name[name].id) for name in names)
        )
        images_by_name = dict(zip(names, listings))

        for student in students:
            name = get_name(student)
            if name in images_by_name:
                student.folder_id = folder_by_name[name].id
                student.images = images_by_name[name]

    def image_date(self, image: DriveFile):
        """Date an image counts for, after applying the time offset."""
        return (image.created_time + self.image_time_offset).date()

    def add_images_to_lessons(self, lessons: Sequence[Lesson]):
        """Attach to each lesson the first student image uploaded on the lesson date."""
        for lesson in lessons:
            for image in lesson.student.images or []:
                if image.created_time is not None and self.image_date(image) == lesson.date:
                    lesson.image = image
                    break

    async def get_students(self) -> List[Student]:
        """Students from the student list page."""
        return parsers.parse_students(await self.client.students_page())


class LessonRefresher:
    """
    Re-fetches pending lessons in the background.

    Runs forever once started: every failure is swallowed and the next
    refresh is scheduled anyway. When the portal session is missing or has
    expired, ``login`` is awaited before the refresh; without it the
    refresh fails with "Not logged in".

    Examples:
        >>> refresher = LessonRefresher(cache, client, interval=10)
        >>> refresher.start()
        >>> ...
        >>> await refresher.stop()
    """

    def __init__(
        self,
        cache: LessonCache,
        client: IzusClient,
        interval: float = 10.0,
        log_refresh: bool = False,
        login: Optional[Callable[[], Awaitable[None]]] = None
    ):
        self.cache = cache
        self.client = client
        self.login = login
        self.interval = interval
        self.log_refresh = log_refresh
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start the refresh loop (no-op when already running)."""
        if self.is_running:
            return
        self._task = asyncio.ensure_future(self._run())
        logger.info(f"Lesson refresh started (every {self.interval:g}s)")

    async def stop(self):
        """Stop the refresh loop."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Lesson refresh stopped")

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.refresh_once()

    async def refresh_once(self) -> bool:
        """
        Force one refresh.

        Returns:
            True if the refresh succeeded
        """
        try:
            # The index page is readable without login, so check explicitly
            if not self.client.session.is_active():
                await self._login()
            await self.cache.get_pending_lessons(force_refresh=True)
        except Exception as e:
            logger.debug(f"Lesson refresh failed: {e}")
            if self.log_refresh:
                handle_error(UserError("Lesson refresh failed", e))
            return False

        if self.log_refresh:
            logger.info("Lessons refreshed")
        return True

    async def _login(self):
        expired = self.client.is_logged_in
        if self.login is None:
            raise UserError("Portal session expired" if expired else "Not logged in")
        if expired:
            logger.warning("Portal session expired, logging in again")
        await self.login()


async def create_student_folders(
    students: Sequence[Student],
    drive: DriveClient
) -> Tuple[List[DriveFile], List[Exception]]:
    """
    Create one image folder per student in the drive root.

    Every folder is attempted even when some fail.

    Returns:
        (created folders, errors)
    """
    names = list(dict.fromkeys(get_name(student) for student in students))
    results = await asyncio.gather(
        *(drive.create_folder(name) for name in names),
        return_exceptions=True
    )

    created: List[DriveFile] = []
    errors: List[Exception] = []
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.warning(f"Cannot create folder {name}: {result}")
            errors.append(result)
        else:
            created.append(result)
    return created, errors


async def open_lesson(
    lesson: Lesson,
    drive: DriveClient,
    base_url: str,
    images_dir: Path
) -> Path:
    """
    Open a lesson's record form and its notebook image.

    Opens the portal link in the browser, downloads the image into
    ``images_dir`` and opens it too.

    Returns:
        Path of the downloaded image

    Raises:
        InputError: If the lesson has no image
    """
    if not lesson.is_openable:
        raise InputError(f"Lesson {lesson.index + 1} has no notebook image")

    url = urljoin(base_url.rstrip('/') + '/', lesson.link or '')
    webbrowser.open(url)

    data = await drive.get_file(lesson.image.id)
    images_dir.mkdir(parents=True, exist_ok=True)
    path = images_dir / Path(lesson.image.name).name
    path.write_bytes(data)
    logger.info(f"Notebook image saved to {path}")

    webbrowser.open(path.resolve().as_uri())
    return path
