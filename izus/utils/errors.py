"""
Error types and error display.

User errors are expected failures (missing credentials, invalid input,
portal failures). They are shown to the user without a traceback. Any
other exception is a program error: it is labelled as such and, in
development mode, logged with its traceback.
"""

import inspect
import logging
from typing import Any, Callable, Optional, Type


logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"
PROGRAM_ERROR = "Program error"


class UserError(Exception):
    """
    Expected failure with a message meant for the user.

    Examples:
        >>> str(UserError("Login failed", ValueError("401 Unauthorized")))
        'Login failed\\nError: 401 Unauthorized'
    """

    def __init__(self, message: str = "", original: Optional[BaseException] = None):
        self.original = original
        text = message
        if message and original is not None and str(original):
            text = f"{message}\nError: {original}"
        super().__init__(text)


class InputError(UserError):
    """Invalid user input; the operation can be retried with new input."""


class CredentialsError(UserError):
    """Credentials are missing or incomplete."""


class PortalError(UserError):
    """Request to the portal failed."""


class PortalFormatError(PortalError):
    """A portal page no longer has the markup the parser expects."""


def format_error(err: BaseException) -> str:
    """
    Format an error for display.

    Examples:
        >>> format_error(InputError("No such lesson"))
        'No such lesson'
        >>> format_error(KeyError("image"))
        "Program error: 'image'"
    """
    message = str(err) or UNKNOWN_ERROR
    if isinstance(err, UserError):
        return message
    return f"{PROGRAM_ERROR}: {message}"


def handle_error(err: BaseException, dev_mode: bool = False) -> str:
    """
    Display an error without raising.

    Args:
        err: Error to display
        dev_mode: Log program errors with their traceback

    Returns:
        The displayed message
    """
    message = format_error(err)

    if isinstance(err, UserError):
        logger.warning(message)
    elif dev_mode:
        logger.error(message, exc_info=err)
    else:
        logger.error(message)

    print(f"\nERROR: {message}")
    return message


async def rerun_on_error(
    func: Callable[[], Any],
    error_type: Type[Exception] = InputError,
    dev_mode: bool = False
) -> Any:
    """
    Run ``func`` until it stops raising ``error_type``.

    Each caught error is displayed before the next attempt. ``func`` may be
    a plain function or a coroutine function.

    Examples:
        >>> lesson = await rerun_on_error(lambda: open_lesson(ctx, ask_number()))
    """
    while True:
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except error_type as e:
            handle_error(e, dev_mode)
