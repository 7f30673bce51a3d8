"""
Application commands.

Each command takes the AppContext and returns a Result. User errors become
failure results carrying the user-facing message, except InputError, which
is raised so the caller can ask for new input. Any other exception is a
program error and propagates.
"""

import logging
from typing import Any, Dict, List

from .context import AppContext
from .models.account import Credentials, Whoami
from .models.lesson import Lesson, Student, lessons_with_image
from .models.result import Result
from .models.teacher import Stats, Teacher
from .services import lessons as lesson_service
from .services.teachers import get_teacher_stats
from .utils.errors import InputError, UserError
from .utils.names import get_name, is_valid_number


logger = logging.getLogger(__name__)


def _failure(error: UserError) -> Result:
    logger.warning(f"Command failed: {error}")
    return Result.from_error(error)


def _login_message(whoami: Whoami) -> str:
    return f"Logged in as {whoami.user_name} ({whoami.role_name}, {whoami.school_name})"


async def check_login(ctx: AppContext) -> Result[Whoami]:
    """Log in if needed and resolve who the user is."""
    try:
        await ctx.call(lambda: ctx.credentials.check_credentials(ctx.client))
        whoami = await ctx.credentials.get_whoami(ctx.client)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)

    return Result.success(whoami, _login_message(whoami))


async def change_login(ctx: AppContext, credentials: Credentials) -> Result[Whoami]:
    """Switch to other credentials; all caches are dropped."""
    try:
        await ctx.change_login(credentials)
        whoami = await ctx.credentials.get_whoami(ctx.client)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)

    return Result.success(whoami, _login_message(whoami))


async def forget_login(ctx: AppContext) -> Result[None]:
    try:
        await ctx.forget_login()
    except UserError as e:
        return _failure(e)
    return Result.success(None, "Login credentials forgotten")


async def init(ctx: AppContext) -> Result[Whoami]:
    """
    Check the login and start the background lesson refresh.

    The refresh is started even when the login fails, so it picks up
    credentials provided later.
    """
    try:
        return await check_login(ctx)
    finally:
        ctx.refresher.start()


async def get_students(ctx: AppContext) -> Result[List[Student]]:
    try:
        students = await ctx.call(ctx.lessons.get_students)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)
    return Result.success(students)


async def create_folders(ctx: AppContext) -> Result[Dict[str, Any]]:
    """
    Create a drive folder for every student.

    Returns:
        Result with the created folders and the number of failures
    """
    try:
        students = await ctx.call(ctx.lessons.get_students)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)

    if not students:
        return Result.failure("No students found, no folders created")

    created, errors = await lesson_service.create_student_folders(students, ctx.drive)
    message = f"{len(created)} folders ready"
    if errors:
        message += f", {len(errors)} could not be created"
    return Result.success(
        {"folders": created, "created_count": len(created), "failed_count": len(errors)},
        message
    )


async def get_lessons(ctx: AppContext, with_image: bool = False) -> Result[List[Lesson]]:
    """
    Pending lessons from the cache, fetched when not cached yet.

    Args:
        with_image: Keep only lessons with a notebook image
    """
    try:
        lessons = await ctx.call(ctx.lessons.get_pending_lessons)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)

    result = Result.success(lessons)
    if with_image:
        result = result.map(lessons_with_image)
    return result


async def get_lessons_with_image(ctx: AppContext) -> Result[List[Lesson]]:
    return await get_lessons(ctx, with_image=True)


async def open_lesson(ctx: AppContext, index: int) -> Result[Lesson]:
    """
    Open the record form and notebook image of a lesson.

    Args:
        index: Lesson index (zero based, as in ``Lesson.index``)

    Raises:
        InputError: If no lesson with an image has this index
    """
    async def do_open() -> Lesson:
        lessons = await ctx.lessons.get_pending_lessons()
        if not 0 <= index < len(lessons) or not lessons[index].is_openable:
            raise InputError(f"Lesson {index + 1} does not exist or has no notebook image")
        lesson = lessons[index]
        await lesson_service.open_lesson(
            lesson,
            ctx.drive,
            ctx.config.base_url,
            ctx.config.images_dir
        )
        return lesson

    try:
        lesson = await ctx.call(do_open)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)

    return Result.success(lesson, f"Opened lesson of {get_name(lesson.student)}")


async def get_teachers(ctx: AppContext) -> Result[List[Teacher]]:
    try:
        teachers = await ctx.call(ctx.teachers.get_teachers)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)
    return Result.success(teachers)


async def get_teacher_similarity(ctx: AppContext, index: int) -> Result[Stats]:
    """
    Statistics of one teacher.

    Raises:
        InputError: If there is no teacher with this index
    """
    async def do_stats() -> Stats:
        teachers = await ctx.teachers.get_teachers()
        if not 0 <= index < len(teachers):
            raise InputError(f"Teacher {index + 1} does not exist")
        teacher = await ctx.teachers.add_classes_to_teacher(teachers[index])
        return get_teacher_stats(teacher)

    try:
        stats = await ctx.call(do_stats)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)

    if not is_valid_number(stats.similarity):
        return Result.failure(
            "Similarity cannot be computed: no class has two or more class log records"
        )

    message = f"Class log similarity: {stats.similarity * 100:.1f} %"
    if is_valid_number(stats.length):
        message += f"\nAverage record length: {stats.length:.1f} characters"
    return Result.success(stats, message)


async def get_teachers_with_similarity(ctx: AppContext) -> Result[List[Teacher]]:
    """Statistics of all teachers, best average percentile first."""
    async def do_stats() -> List[Teacher]:
        teachers = await ctx.teachers.get_teachers()
        return await ctx.teachers.add_stats_to_teachers(teachers)

    try:
        teachers = await ctx.call(do_stats)
    except InputError:
        raise
    except UserError as e:
        return _failure(e)
    return Result.success(teachers, f"Statistics of {len(teachers)} teachers")
