"""
Lesson data models.

This module provides the person, student and lesson records scraped from
the portal, together with the drive images attached to them.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional


@dataclass
class Named:
    """
    Anything with a person name.

    Attributes:
        first_name: Given name
        last_name: Family name
    """

    first_name: str
    last_name: str


@dataclass
class DriveFile:
    """
    File or folder stored in the drive.

    Attributes:
        id: Drive identifier, used to list or download the file
        name: File or folder name
        created_time: Upload time (timezone aware)
        mime_type: Optional MIME type
    """

    id: str
    name: str
    created_time: Optional[datetime] = None
    mime_type: Optional[str] = None


@dataclass
class Student(Named):
    """
    Student with optional drive folder and uploaded images.

    ``folder_id`` and ``images`` are filled by matching a drive folder
    named after the student's full name.

    Examples:
        >>> student = Student(first_name="Jan", last_name="Novák")
        >>> student.images is None
        True
    """

    folder_id: Optional[str] = None
    images: Optional[List[DriveFile]] = None


@dataclass
class Lesson:
    """
    Pending lesson scraped from the portal index page.

    Attributes:
        index: Position within one refresh snapshot, used to address the lesson
        date: Lesson date
        student: Student attending the lesson
        link: Relative link to the lesson record form
        image: Notebook image matched by upload date, if any

    Examples:
        >>> lesson = Lesson(
        ...     index=0,
        ...     date=date(2024, 3, 5),
        ...     student=Student(first_name="Jan", last_name="Novák"),
        ...     link="/zapis/?id=1"
        ... )
        >>> lesson.is_openable
        False
    """

    index: int
    date: date
    student: Student
    link: Optional[str] = None
    image: Optional[DriveFile] = None

    @property
    def is_openable(self) -> bool:
        """Check if a notebook image is attached."""
        return self.image is not None


def lessons_with_image(lessons: List[Lesson]) -> List[Lesson]:
    """Return only the openable lessons, keeping their order."""
    return [lesson for lesson in lessons if lesson.is_openable]
