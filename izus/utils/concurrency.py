"""
Asyncio helpers for racing long-running work against user input.

Cancellation here is best effort: when the user interrupts, the work keeps
running in the background and only its result is discarded.
"""

import asyncio
import logging
import sys
from typing import Any, Awaitable, Optional, Set, Tuple


logger = logging.getLogger(__name__)

# Keeps abandoned tasks referenced until they finish
_background_tasks: Set[asyncio.Future] = set()


async def first_completed(
    primary: Awaitable[Any],
    interrupt: Awaitable[Any]
) -> Tuple[bool, Optional[Any]]:
    """
    Race ``primary`` against ``interrupt``.

    Returns:
        (True, result) when ``primary`` finishes first,
        (False, None) when ``interrupt`` does

    Note:
        A losing ``primary`` is not cancelled; its network calls still
        complete in the background while the event loop runs. A losing
        ``interrupt`` is cancelled.

    Examples:
        >>> done, teachers = await first_completed(add_stats(), wait_for_enter())
        >>> if not done:
        ...     print("Interrupted")
    """
    primary_task = asyncio.ensure_future(primary)
    interrupt_task = asyncio.ensure_future(interrupt)

    await asyncio.wait({primary_task, interrupt_task}, return_when=asyncio.FIRST_COMPLETED)

    if primary_task.done():
        interrupt_task.cancel()
        return True, primary_task.result()

    logger.info("Interrupted, pending work continues in the background")
    _background_tasks.add(primary_task)
    primary_task.add_done_callback(_discard_result)
    return False, None


def _discard_result(task: asyncio.Future):
    _background_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Discarded background work failed: {task.exception()}")


def wait_for_enter(stream=None) -> asyncio.Future:
    """
    Future resolved when a line is typed on ``stream`` (stdin by default).

    Uses the event loop's reader callbacks, so no thread is left blocked on
    the stream once the future is cancelled.
    """
    stream = stream or sys.stdin
    loop = asyncio.get_running_loop()
    future = loop.create_future()
    fd = stream.fileno()

    def on_input():
        stream.readline()
        if not future.done():
            future.set_result(True)

    loop.add_reader(fd, on_input)
    future.add_done_callback(lambda _: loop.remove_reader(fd))
    return future
