#!/usr/bin/env python3
"""
iZUS command line.

Lists pending lessons with the notebook images students uploaded, opens a
lesson together with its image, and ranks teachers by how repetitive their
class logs are.

Usage:
    izus [--username USER] [--password PASSWORD] [--log-level LEVEL] COMMAND

Examples:
    # Check the login and show the login history
    izus login
    izus history

    # Pending lessons, only those with a notebook image, open lesson 3
    izus lessons
    izus lessons --with-image
    izus open 3

    # Teacher statistics, exported to CSV
    izus similarity 12
    izus stats --csv output/exports/teachers.csv

    # Keep refreshing and print lessons whenever a notebook image arrives
    izus watch

    # Use credentials from environment variables
    export IZUS_USERNAME="novak.jan"
    export IZUS_PASSWORD="your_password"
    izus lessons
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from .commands import (
    check_login,
    change_login,
    create_folders,
    forget_login,
    get_lessons,
    get_lessons_with_image,
    get_students,
    get_teacher_similarity,
    get_teachers,
    get_teachers_with_similarity,
    init,
    open_lesson,
)
from .context import AppContext
from .models.account import Credentials
from .models.result import Result
from .utils.concurrency import first_completed, wait_for_enter
from .utils.config import config, SecureString
from .utils.errors import InputError, UserError, handle_error, rerun_on_error
from .utils.file_utils import generate_filename, save_csv
from .utils.logger import setup_logger
from .utils.tables import (
    format_lessons,
    format_students,
    format_teachers,
    format_teachers_with_stats,
    teachers_to_dataframe,
)


logger = logging.getLogger("izus.cli")

WATCH_POLL_SECONDS = 1.0


def parse_arguments(argv=None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="izus",
        description="Pending lessons and teacher statistics from the iZUS portal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "--username",
        help="Portal login name (overrides IZUS_USERNAME env var)"
    )

    parser.add_argument(
        "--password",
        help="Portal password (overrides IZUS_PASSWORD env var)"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LOG_LEVEL env var or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", help="Check or change the login")
    login_parser.add_argument(
        "--change",
        action="store_true",
        help="Ask for new credentials"
    )
    login_parser.add_argument(
        "--forget",
        action="store_true",
        help="Forget the current credentials"
    )

    subparsers.add_parser("history", help="Show the login history")
    subparsers.add_parser("students", help="List students")
    subparsers.add_parser("folders", help="Create a drive folder for every student")

    lessons_parser = subparsers.add_parser("lessons", help="List pending lessons")
    lessons_parser.add_argument(
        "--with-image",
        action="store_true",
        help="Only lessons with a notebook image"
    )

    open_parser = subparsers.add_parser("open", help="Open a lesson and its notebook image")
    open_parser.add_argument("number", type=int, nargs="?", help="Lesson number")

    subparsers.add_parser("teachers", help="List teachers")

    similarity_parser = subparsers.add_parser(
        "similarity",
        help="Class log similarity of one teacher"
    )
    similarity_parser.add_argument("number", type=int, nargs="?", help="Teacher number")

    stats_parser = subparsers.add_parser("stats", help="Rank all teachers")
    stats_parser.add_argument(
        "--csv",
        type=Path,
        nargs="?",
        const=True,
        default=None,
        help="Export the statistics to CSV (default path in the exports folder)"
    )

    subparsers.add_parser("watch", help="Print lessons whenever a notebook image arrives")

    return parser.parse_args(argv)


def print_header(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def print_result(result: Result, formatter: Optional[Callable] = None) -> int:
    """
    Print a command result.

    Returns:
        Exit code (0 success, 1 failure)
    """
    if result.is_failure:
        print(f"\nERROR: {result.message}")
        return 1

    if formatter is not None:
        print(formatter(result.value))
    if result.message:
        print(f"\n{result.message}")
    return 0


def ask_number(label: str) -> int:
    """
    Ask for a 1-based number and return the zero-based index.

    Raises:
        InputError: If the answer is not a positive number
    """
    answer = input(f"{label} number: ").strip()
    try:
        number = int(answer)
    except ValueError:
        raise InputError(f"Not a number: {answer!r}")
    if number < 1:
        raise InputError("The number must be 1 or higher")
    return number - 1


def ask_credentials() -> Credentials:
    username = input("Username: ").strip()
    password = getpass.getpass("Password: ")
    if not username or not password:
        raise InputError("Username and password are required")
    return Credentials(username=username, password=SecureString(password))


async def run_login(ctx: AppContext, args) -> int:
    if args.forget:
        return print_result(await forget_login(ctx))

    if args.change or not ctx.credentials.has_credentials():
        credentials = await rerun_on_error(ask_credentials, dev_mode=config.is_development)
        return print_result(await change_login(ctx, credentials))

    return print_result(await check_login(ctx))


async def run_open(ctx: AppContext, args) -> int:
    if args.number is not None:
        return print_result(await open_lesson(ctx, args.number - 1))

    listed = await get_lessons_with_image(ctx)
    if listed.is_failure:
        return print_result(listed)
    if not listed.value:
        print("\nNo lesson has a notebook image yet.")
        return 0

    print(format_lessons(listed.value))

    async def open_asked():
        return await open_lesson(ctx, ask_number("Lesson"))

    result = await rerun_on_error(open_asked, dev_mode=config.is_development)
    return print_result(result)


async def run_similarity(ctx: AppContext, args) -> int:
    if args.number is not None:
        return print_result(await get_teacher_similarity(ctx, args.number - 1))

    listed = await get_teachers(ctx)
    if listed.is_failure:
        return print_result(listed)
    print(format_teachers(listed.value))

    async def similarity_asked():
        return await get_teacher_similarity(ctx, ask_number("Teacher"))

    result = await rerun_on_error(similarity_asked, dev_mode=config.is_development)
    return print_result(result)


async def run_stats(ctx: AppContext, args) -> int:
    print_header("TEACHER STATISTICS")
    work = get_teachers_with_similarity(ctx)

    if sys.stdin.isatty():
        print("Fetching class logs, press Enter to stop...")
        done, result = await first_completed(work, wait_for_enter())
        if not done:
            print("\nStopped by user")
            return 0
    else:
        print("Fetching class logs...")
        result = await work

    exit_code = print_result(result, format_teachers_with_stats)
    if result.is_success and args.csv is not None:
        csv_path = (
            args.csv if isinstance(args.csv, Path)
            else config.exports_dir / generate_filename("teacher_stats", "csv")
        )
        if save_csv(teachers_to_dataframe(result.value), csv_path):
            print(f"Statistics saved to: {csv_path}")
        else:
            print(f"\nERROR: Cannot save statistics to {csv_path}")
            return 1
    return exit_code


async def run_watch(ctx: AppContext, args) -> int:
    login = await init(ctx)
    if print_result(login):
        print("Watching needs a working login. Fix it with: izus login --change")
        return 1

    lessons = await get_lessons(ctx)
    if lessons.is_success:
        print(format_lessons(lessons.value))

    print("\nWatching for notebook images, press Ctrl+C to stop...")
    while True:
        await asyncio.sleep(WATCH_POLL_SECONDS)
        if ctx.lessons.is_lesson_changed():
            print_header("NEW NOTEBOOK IMAGE")
            print(format_lessons(ctx.lessons.lessons or []))


async def run_command(ctx: AppContext, args) -> int:
    """Dispatch a parsed command."""
    if args.command == "login":
        return await run_login(ctx, args)
    if args.command == "history":
        if ctx.history.is_empty():
            print("\nNo logins recorded yet.")
            return 0
        print(ctx.history.format())
        return 0
    if args.command == "students":
        return print_result(await get_students(ctx), format_students)
    if args.command == "folders":
        return print_result(await create_folders(ctx))
    if args.command == "lessons":
        return print_result(await get_lessons(ctx, args.with_image), format_lessons)
    if args.command == "open":
        return await run_open(ctx, args)
    if args.command == "teachers":
        return print_result(await get_teachers(ctx), format_teachers)
    if args.command == "similarity":
        return await run_similarity(ctx, args)
    if args.command == "stats":
        return await run_stats(ctx, args)
    if args.command == "watch":
        return await run_watch(ctx, args)
    raise ValueError(f"Unknown command: {args.command}")


async def run(args) -> int:
    async with AppContext(config) as ctx:
        username = args.username or config.izus_username
        if args.password:
            logger.info("Using password from command-line argument")
            password = SecureString(args.password)
        else:
            password = config.izus_password
        if username and password:
            ctx.credentials.set(Credentials(username=username, password=password))

        return await run_command(ctx, args)


def main(argv=None) -> int:
    """Main execution function."""
    args = parse_arguments(argv)

    level = args.log_level or config.log_level
    setup_logger(
        "izus",
        level=getattr(logging, level, logging.INFO),
        log_file=str(config.log_file)
    )

    try:
        logger.info("Validating configuration")
        try:
            config.validate()
        except ValueError as e:
            raise UserError("Invalid configuration", e) from e
        config.create_output_directories()

        return asyncio.run(run(args))

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        handle_error(e, dev_mode=config.is_development)
        return 1


if __name__ == "__main__":
    sys.exit(main())
