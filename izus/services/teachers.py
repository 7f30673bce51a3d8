"""
Teacher statistics.

For every teacher the class logs of all their classes are fetched. Two
statistics describe how the logs are written:

- similarity: mean pairwise similarity of the log texts within a class
- length: mean log text length

Teachers are then ranked by percentile on both statistics. A high
similarity ranks high, a short length ranks high.
"""

import asyncio
import itertools
import logging
import math
from difflib import SequenceMatcher
from typing import List, Optional, Sequence

import pandas as pd

from ..models.teacher import Record, SchoolClass, Stats, Teacher
from ..portal import parsers
from ..portal.client import IzusClient
from ..utils.names import average, chunks, get_name, is_valid_number, strict_average


logger = logging.getLogger(__name__)


def text_similarity(text1: str, text2: str) -> float:
    """
    Similarity of two texts from 0 (different) to 1 (same), ignoring case.

    Uses the difflib matching-blocks ratio, which is not the normalized
    Levenshtein distance (1 - distance / longer length). Values differ from
    a Levenshtein score for the same texts.

    Examples:
        >>> text_similarity("Stupnice C dur", "stupnice c dur")
        1.0
    """
    return SequenceMatcher(None, text1.lower(), text2.lower()).ratio()


def records_similarity(records: Sequence[Record]) -> float:
    """Mean similarity over all record pairs; NaN with fewer than two records."""
    if len(records) <= 1:
        return math.nan
    return average(
        text_similarity(record1.text, record2.text)
        for record1, record2 in itertools.combinations(records, 2)
    )


def records_length(records: Sequence[Record]) -> float:
    """Mean record text length; NaN without records."""
    if not records:
        return math.nan
    return average(len(record.text) for record in records)


def get_teacher_stats(teacher: Teacher) -> Stats:
    """
    Compute statistics of a teacher whose classes are filled.

    Each statistic is computed per class and averaged across classes.
    A class without a value (fewer than two records for similarity, none
    for length) makes the statistic NaN, so the teacher is not ranked on
    it. A teacher without classes gets NaN for both.
    """
    stats = Stats()
    classes: List[SchoolClass] = teacher.classes or []
    if classes:
        stats.similarity = strict_average(records_similarity(cls.records or []) for cls in classes)
        stats.length = strict_average(records_length(cls.records or []) for cls in classes)
    return stats


def add_percentile(
    teachers: Sequence[Teacher],
    stat: str,
    dest: str,
    descending: bool = False
):
    """
    Set ``stats.<dest>`` to the rank fraction of ``stats.<stat>``.

    Only teachers with a valid value are ranked. The lowest value gets 0
    and the highest 1 (reversed when ``descending``). Tied teachers keep
    list order when ascending and reverse it when descending.
    With fewer than two valid teachers nothing is set.

    Examples:
        >>> # similarities 0.2, 0.5, 0.8 -> percentiles 0, 0.5, 1
        >>> add_percentile(teachers, "similarity", "similarity_percentile")
    """
    ranked = [
        teacher for teacher in teachers
        if teacher.stats is not None and is_valid_number(getattr(teacher.stats, stat))
    ]
    if len(ranked) <= 1:
        return

    values = pd.Series([getattr(teacher.stats, stat) for teacher in ranked], dtype="float64")
    ranks = values.rank(method="first") - 1
    if descending:
        ranks = len(ranked) - 1 - ranks
    for teacher, rank in zip(ranked, ranks):
        setattr(teacher.stats, dest, float(rank) / (len(ranked) - 1))


def add_percentiles(teachers: Sequence[Teacher]):
    """Rank similarity (ascending) and length (shorter is better), then average."""
    add_percentile(teachers, "similarity", "similarity_percentile")
    add_percentile(teachers, "length", "length_percentile", descending=True)

    for teacher in teachers:
        stats = teacher.stats
        if stats is None:
            continue
        if is_valid_number(stats.similarity_percentile) and is_valid_number(stats.length_percentile):
            stats.avg_percentile = (stats.similarity_percentile + stats.length_percentile) / 2


def sort_by_avg_percentile(teachers: Sequence[Teacher]) -> List[Teacher]:
    """Best first; teachers without an average percentile go last, ties in reverse list order."""
    def key(teacher: Teacher):
        value = teacher.stats.avg_percentile if teacher.stats else None
        return (1, value) if is_valid_number(value) else (0, 0.0)

    return list(reversed(sorted(teachers, key=key)))


class TeacherCache:
    """
    Cache of the staff list and the statistics engine on top of it.

    Examples:
        >>> cache = TeacherCache(client, chunk_size=20, delay=5)
        >>> teachers = await cache.get_teachers()
        >>> ranked = await cache.add_stats_to_teachers(teachers)
    """

    def __init__(
        self,
        client: IzusClient,
        max_teachers: Optional[int] = None,
        max_classes: Optional[int] = None,
        chunk_size: int = 20,
        delay: float = 5.0
    ):
        """
        Initialize TeacherCache.

        Args:
            client: Portal client
            max_teachers: Rank at most this many teachers (None for all)
            max_classes: Read at most this many classes per teacher
            chunk_size: Teachers fetched concurrently per batch
            delay: Seconds to wait between batches
        """
        self.client = client
        self.max_teachers = max_teachers
        self.max_classes = max_classes
        self.chunk_size = chunk_size
        self.delay = delay
        self._teachers: Optional[List[Teacher]] = None

    def invalidate(self):
        self._teachers = None
        logger.debug("Teacher cache invalidated")

    async def get_teachers(self) -> List[Teacher]:
        """Staff list, fetched once and cached."""
        if self._teachers is None:
            self._teachers = parsers.parse_teachers(await self.client.staff_page())
        return self._teachers

    async def get_class_records(self, cls: SchoolClass) -> List[Record]:
        html = await self.client.class_log_page(cls.student.id, cls.id)
        return parsers.parse_records(html)

    async def add_classes_to_teacher(self, teacher: Teacher) -> Teacher:
        """
        Fill a teacher's classes and their records.

        The records of all classes are fetched concurrently.
        """
        html = await self.client.staff_documents_page(teacher.id)
        classes = parsers.parse_classes(html, self.max_classes)

        records = await asyncio.gather(*(self.get_class_records(cls) for cls in classes))
        for cls, class_records in zip(classes, records):
            cls.records = class_records

        teacher.classes = classes
        return teacher

    async def add_stats_to_teacher(self, teacher: Teacher) -> Teacher:
        await self.add_classes_to_teacher(teacher)
        teacher.stats = get_teacher_stats(teacher)

        if is_valid_number(teacher.stats.similarity):
            logger.info(
                f"{get_name(teacher)}: class log similarity "
                f"{teacher.stats.similarity * 100:.1f} %"
            )
        return teacher

    async def add_stats_to_teachers(self, teachers: Sequence[Teacher]) -> List[Teacher]:
        """
        Compute statistics and percentiles of all teachers.

        Teachers are processed in batches of ``chunk_size`` with ``delay``
        seconds between batches so the portal is not flooded.

        Returns:
            Teachers sorted by average percentile, best first
        """
        if self.max_teachers:
            teachers = teachers[:self.max_teachers]

        batches = list(chunks(list(teachers), self.chunk_size))
        processed: List[Teacher] = []

        for number, batch in enumerate(batches, 1):
            logger.debug(f"Teacher batch {number}/{len(batches)} ({len(batch)} teachers)")
            await asyncio.gather(*(self.add_stats_to_teacher(teacher) for teacher in batch))
            processed.extend(batch)

            if number < len(batches) and self.delay > 0:
                await asyncio.sleep(self.delay)

        add_percentiles(processed)
        return sort_by_avg_percentile(processed)
