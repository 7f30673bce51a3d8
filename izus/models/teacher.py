"""
Teacher data models.

Teachers are listed from the staff page. Their classes and class log
records are fetched on demand, and statistics are attached afterwards.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .lesson import Named


@dataclass
class Record:
    """One "present" row of a class log: lesson date and what was taught."""

    date: date
    text: str


@dataclass
class ClassStudent(Named):
    """Student as referenced from a class list."""

    id: int = 0


@dataclass
class SchoolClass:
    """
    Class (one student, one subject) taught by a teacher.

    Attributes:
        id: Class log identifier
        student: Student of the class
        subject: Subject name
        records: Class log records, filled on demand
    """

    id: int
    student: ClassStudent
    subject: str
    records: Optional[List[Record]] = None


@dataclass
class Stats:
    """
    Teacher statistics.

    ``similarity`` and ``length`` are NaN for a teacher without usable
    records. Percentiles stay None until ranked among other teachers.

    Attributes:
        similarity: Mean pairwise similarity of class log texts (0..1)
        length: Mean class log text length in characters
        similarity_percentile: Rank fraction of similarity, higher is more similar
        length_percentile: Rank fraction of length, higher is shorter
        avg_percentile: Mean of both percentiles
    """

    similarity: float = math.nan
    length: float = math.nan
    similarity_percentile: Optional[float] = None
    length_percentile: Optional[float] = None
    avg_percentile: Optional[float] = None


@dataclass
class Teacher(Named):
    """
    Teacher from the staff list.

    Examples:
        >>> teacher = Teacher(first_name="Eva", last_name="Dvořáková", index=0, id=42)
        >>> teacher.classes is None
        True
    """

    index: int = 0
    id: int = 0
    classes: Optional[List[SchoolClass]] = None
    stats: Optional[Stats] = None
