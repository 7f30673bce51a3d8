"""
Console tables.

Tables are rendered through pandas. A sorted column gets an arrow after its
header, missing values are shown as "-".
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from ..models.lesson import Lesson, Student
from ..models.teacher import Teacher
from .names import get_name, is_valid_number


EMPTY_VALUE = "-"
NUMBER_HEADER = "No."
ARROW_UP = "↑"
ARROW_DOWN = "↓"


def format_value(value: Any, formatter: Optional[Callable[[Any], str]] = None) -> str:
    """
    Format a cell value; None and NaN become "-".

    Examples:
        >>> format_value(float("nan"))
        '-'
        >>> format_value(3)
        '3'
    """
    if value is None:
        return EMPTY_VALUE
    if isinstance(value, float) and not is_valid_number(value):
        return EMPTY_VALUE
    return formatter(value) if formatter else str(value)


def number_format(value: Optional[float]) -> str:
    """
    Examples:
        >>> number_format(42.25)
        '42.2'
    """
    return format_value(value, lambda v: f"{v:.1f}")


def percent_format(value: Optional[float]) -> str:
    """
    Format a 0..1 fraction as a percentage.

    Examples:
        >>> percent_format(0.5)
        '50.0 %'
        >>> percent_format(None)
        '-'
    """
    return format_value(value, lambda v: f"{v * 100:.1f} %")


def render_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    sort_column: Optional[int] = None,
    descending: bool = False,
    number_column: bool = False
) -> str:
    """
    Render rows as a plain text table.

    Args:
        headers: Column headers
        rows: Row values, already formatted
        sort_column: Index of the column the rows are sorted by (within ``headers``)
        descending: Direction shown by the sort arrow
        number_column: Prepend a "No." column counting rows from 1

    Raises:
        IndexError: If ``sort_column`` is not a column index
    """
    headers = list(headers)
    if sort_column is not None:
        if not 0 <= sort_column < len(headers):
            raise IndexError(f"No column {sort_column} to sort by")
        headers[sort_column] = f"{headers[sort_column]} {ARROW_DOWN if descending else ARROW_UP}"

    df = pd.DataFrame([list(row) for row in rows], columns=headers, dtype=object)
    if number_column:
        df.insert(0, NUMBER_HEADER, range(1, len(df) + 1))

    if df.empty:
        return "  ".join(str(column) for column in df.columns)
    return df.to_string(index=False)


def format_lessons(lessons: Sequence[Lesson]) -> str:
    """
    Table of pending lessons.

    The number column shows ``index + 1`` rather than the row position, as
    it is the number the user passes to ``open``.
    """
    rows = [
        [
            lesson.index + 1,
            lesson.date.strftime("%d. %m. %Y"),
            get_name(lesson.student),
            "Yes" if lesson.image else "No",
        ]
        for lesson in lessons
    ]
    return render_table(
        [NUMBER_HEADER, "Lesson date", "Student", "Notebook"],
        rows,
        sort_column=1
    )


def format_students(students: Sequence[Student]) -> str:
    """One student name per line."""
    return "\n".join(get_name(student) for student in students)


def format_teachers(teachers: Sequence[Teacher]) -> str:
    return render_table(
        ["Teacher"],
        [[get_name(teacher)] for teacher in teachers],
        sort_column=0,
        number_column=True
    )


def format_teachers_with_stats(teachers: Sequence[Teacher]) -> str:
    """Teachers with statistics, sorted by average percentile."""
    rows = []
    for teacher in teachers:
        stats = teacher.stats
        rows.append([
            get_name(teacher),
            percent_format(stats.similarity if stats else None),
            percent_format(stats.similarity_percentile if stats else None),
            number_format(stats.length if stats else None),
            percent_format(stats.length_percentile if stats else None),
            percent_format(stats.avg_percentile if stats else None),
        ])

    return render_table(
        [
            "Teacher",
            "Similarity",
            "Similarity percentile",
            "Length",
            "Length percentile",
            "Avg percentile",
        ],
        rows,
        sort_column=5,
        descending=True,
        number_column=True
    )


def teachers_to_dataframe(teachers: Sequence[Teacher]) -> pd.DataFrame:
    """Raw teacher statistics for CSV export."""
    records: List[Dict[str, Any]] = []
    for teacher in teachers:
        stats = teacher.stats
        records.append({
            "id": teacher.id,
            "name": get_name(teacher),
            "classes": len(teacher.classes or []),
            "similarity": stats.similarity if stats else None,
            "similarity_percentile": stats.similarity_percentile if stats else None,
            "length": stats.length if stats else None,
            "length_percentile": stats.length_percentile if stats else None,
            "avg_percentile": stats.avg_percentile if stats else None,
        })
    return pd.DataFrame(records)


def _school_name(school: Any) -> str:
    if isinstance(school, dict):
        return school.get("nameShort") or school.get("name") or EMPTY_VALUE
    return format_value(school)


def format_credentials_history(entries: Sequence[Dict[str, Any]]) -> str:
    """Login history table, latest login first."""
    rows = [
        [
            format_value(entry.get("user")),
            format_value(entry.get("userName")),
            _school_name(entry.get("school")),
            format_value(entry.get("roleName")),
            format_value(entry.get("lastLogin"), lambda v: str(v).replace("T", " ")),
        ]
        for entry in reversed(list(entries))
    ]
    return render_table(
        ["User", "User name", "School", "Role", "Last login"],
        rows,
        sort_column=4,
        descending=True
    )
