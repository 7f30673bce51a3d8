"""
HTML parsers for portal pages.

Each parser is a pure function from an HTML string to typed records, using
BeautifulSoup with the selectors from ``selectors.py``. A listing page that
lacks its anchor element raises PortalFormatError instead of silently
returning nothing.
"""

import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from .selectors import selectors
from ..models.lesson import Lesson, Student
from ..models.teacher import ClassStudent, Record, SchoolClass, Teacher
from ..utils.errors import PortalFormatError
from ..utils.names import create_named, normalize_whitespace, parse_portal_date, sort_named


logger = logging.getLogger(__name__)

CLASS_OPTION_PATTERN = re.compile(r'([a-zá-ž ]+) \(([a-zá-ž0-9 ]+)\)', re.IGNORECASE)
STUDY_BRANCH_PATTERN = re.compile(r'\(.+\)')


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _text(element: Tag, selector: str, default: str = "") -> str:
    """Text of the first match of ``selector`` below ``element``."""
    found = element.select_one(selector)
    return found.get_text() if found is not None else default


def _body_rows(table: Tag, selector: str, root: Optional[Tag] = None) -> List[Tag]:
    """
    Rows matched by ``selector``, or all rows of ``table`` when the markup
    has no explicit tbody.
    """
    rows = (root or table).select(selector)
    if not rows and table.find("tbody") is None:
        rows = table.find_all("tr")
    return rows


def parse_students(html: str) -> List[Student]:
    """
    Parse the student list page.

    Returns:
        Students sorted by last name, then first name

    Raises:
        PortalFormatError: If the student table is missing
    """
    soup = _soup(html)
    sel = selectors.students

    table = soup.select_one(sel.students_table)
    if table is None:
        raise PortalFormatError("Student table not found on the student list page")

    students = []
    for row in _body_rows(table, sel.student_rows, root=soup):
        cells = [cell.get_text().strip() for cell in row.select(sel.name_cells)]
        if not cells or not cells[0]:
            continue
        first_name = cells[1] if len(cells) > 1 else ""
        students.append(Student(first_name=first_name, last_name=cells[0]))

    logger.debug(f"Parsed {len(students)} students")
    return sort_named(students)


def parse_pending_lessons(html: str) -> List[Lesson]:
    """
    Parse pending lessons from the index page.

    Only the first lesson table is read and its header row is skipped.
    Rows whose date does not parse are skipped. ``index`` is the position
    in the returned list.

    Raises:
        PortalFormatError: If the lesson table is missing
    """
    soup = _soup(html)
    sel = selectors.index

    table = soup.select_one(sel.lessons_table)
    if table is None:
        raise PortalFormatError("Pending lessons table not found on the index page")

    lessons: List[Lesson] = []
    for row in table.select(sel.lesson_rows)[1:]:
        date_text = _text(row, sel.lesson_date)
        try:
            lesson_date = parse_portal_date(date_text)
        except ValueError:
            logger.debug(f"Skipping lesson row with date {date_text!r}")
            continue

        whole_name = STUDY_BRANCH_PATTERN.sub('', _text(row, sel.lesson_student)).strip()
        named = create_named(whole_name)

        button = row.select_one(sel.lesson_link)
        link = button.get("href") if button is not None else None

        lessons.append(Lesson(
            index=len(lessons),
            date=lesson_date,
            student=Student(first_name=named.first_name, last_name=named.last_name),
            link=link,
        ))

    logger.debug(f"Parsed {len(lessons)} pending lessons")
    return lessons


def parse_teachers(html: str) -> List[Teacher]:
    """
    Parse the staff list page.

    Returns:
        Teachers sorted by name; ``index`` is the position in that order

    Raises:
        PortalFormatError: If the staff table is missing
    """
    soup = _soup(html)
    sel = selectors.staff

    table = soup.select_one(sel.staff_table)
    if table is None:
        raise PortalFormatError("Staff table not found on the staff list page")

    teachers = []
    for row in _body_rows(table, sel.rows, root=soup):
        id_input = row.select_one(sel.id_input)
        if id_input is None:
            continue
        try:
            teacher_id = int(id_input.get("value", ""))
        except ValueError:
            logger.warning(f"Skipping staff row with id {id_input.get('value')!r}")
            continue

        teachers.append(Teacher(
            first_name=_text(row, sel.first_name).strip(),
            last_name=_text(row, sel.last_name).strip(),
            id=teacher_id,
        ))

    teachers = sort_named(teachers)
    for index, teacher in enumerate(teachers):
        teacher.index = index

    logger.debug(f"Parsed {len(teachers)} teachers")
    return teachers


def parse_classes(html: str, max_classes: Optional[int] = None) -> List[SchoolClass]:
    """
    Parse the class list from a teacher's documents page.

    Args:
        html: Documents page HTML
        max_classes: Read at most this many options (None for all)

    Returns:
        Classes; options with unexpected text are skipped
    """
    soup = _soup(html)
    sel = selectors.documents

    if soup.select_one(sel.class_select) is None:
        logger.warning("Class selector not found on the documents page")
        return []

    classes = []
    for option in soup.select(sel.class_options)[:max_classes]:
        student_id, _, class_id = option.get("value", "").partition("_")
        match = CLASS_OPTION_PATTERN.search(option.get_text())
        if not match:
            continue
        try:
            student_id, class_id = int(student_id), int(class_id)
        except ValueError:
            continue

        student_name, subject = match.groups()
        named = create_named(student_name.strip())
        classes.append(SchoolClass(
            id=class_id,
            student=ClassStudent(
                first_name=named.first_name,
                last_name=named.last_name,
                id=student_id,
            ),
            subject=subject,
        ))

    return classes


def parse_records(html: str) -> List[Record]:
    """
    Parse the "present" rows of a class log.

    Only rows marked present are kept; unfilled rows are ignored.
    """
    soup = _soup(html)
    sel = selectors.class_log

    table = soup.select_one(sel.records_table)
    if table is None:
        logger.warning("Class log table not found")
        return []

    records = []
    for row in _body_rows(table, sel.record_rows):
        if "nevyplneno" in (row.get("class") or []):
            continue
        if _text(row, sel.attendance).strip() != sel.present_mark:
            continue

        date_text = _text(row, sel.date)
        try:
            record_date = parse_portal_date(date_text)
        except ValueError:
            logger.warning(f"Skipping class log row with date {date_text!r}")
            continue

        text = normalize_whitespace(_text(row, sel.topic).strip())
        records.append(Record(date=record_date, text=text))

    return records
