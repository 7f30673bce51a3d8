"""
Result<T> pattern for command outcomes.

Every CLI command returns a Result: the value on success, or the
user-facing message and the error that caused the failure.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar


T = TypeVar('T')
U = TypeVar('U')


class ResultStatus(Enum):
    """Status of a Result."""
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class Result(Generic[T]):
    """
    Outcome of a command.

    Attributes:
        status: Result status (SUCCESS or FAILURE)
        value: Command data if successful (None if failure)
        error: The exception that caused failure (None if success)
        message: Optional message describing the result

    Examples:
        >>> result = Result.success(lessons, "3 pending lessons")
        >>> if result.is_success:
        ...     print(format_lessons(result.value))

        >>> result = Result.from_error(InputError("Lesson 7 has no notebook image"))
        >>> result.message
        'Lesson 7 has no notebook image'
    """

    status: ResultStatus
    value: Optional[T] = None
    error: Optional[Exception] = None
    message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """Check if the result represents success."""
        return self.status == ResultStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        """Check if the result represents failure."""
        return self.status == ResultStatus.FAILURE

    @classmethod
    def success(cls, value: T, message: Optional[str] = None) -> 'Result[T]':
        """Create a successful result."""
        return cls(status=ResultStatus.SUCCESS, value=value, message=message)

    @classmethod
    def failure(
        cls,
        message: str,
        error: Optional[Exception] = None
    ) -> 'Result[T]':
        """
        Create a failure result.

        Args:
            message: Error message describing the failure
            error: Optional exception that caused the failure
        """
        return cls(status=ResultStatus.FAILURE, message=message, error=error)

    @classmethod
    def from_error(cls, error: Exception) -> 'Result[T]':
        """Create a failure result carrying the error's own message."""
        return cls.failure(str(error) or "Unknown error", error)

    def unwrap(self) -> T:
        """
        Unwrap the result value.

        Raises:
            ValueError: If the result is a failure
        """
        if self.is_failure:
            raise ValueError(
                f"Cannot unwrap failure result: {self.message}"
            )
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Unwrap the result value or return a default."""
        return self.value if self.is_success else default

    def map(self, func: Callable[[T], U]) -> 'Result[U]':
        """
        Map a function over the success value.

        Failures pass through unchanged. An exception raised by ``func``
        becomes a failure.

        Examples:
            >>> Result.success(lessons).map(lessons_with_image)
        """
        if self.is_failure:
            return Result.failure(self.message, self.error)

        try:
            return Result.success(func(self.value), self.message)
        except Exception as e:
            return Result.failure(str(e), e)
