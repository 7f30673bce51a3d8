"""
iZUS portal selectors and endpoints.

This module centralizes all CSS selectors and page paths for the portal.
Centralizing selectors makes it easier to update when the site structure changes.

Usage:
    >>> from izus.portal.selectors import selectors
    >>> soup.select(selectors.staff.rows)
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Endpoints:
    """JSON API and HTML page paths, relative to the portal URL."""

    login: str = "/ws/api/login"
    logout: str = "/ws/api/logout"
    whoami: str = "/ws/whoami"
    schools: str = "/ws/skoly"

    index: str = "/"
    students: str = "/zaci/"
    staff: str = "/zamestnanci/"
    staff_documents: str = "/zamestnanci/dokumenty/"
    class_log: str = "/zaci/dokumenty/tridni_kniha/"


@dataclass(frozen=True)
class IndexSelectors:
    """Selectors for the pending lessons table on the index page."""

    # First table only; its first row is the header
    lessons_table: str = "table.tridni_kniha"
    lesson_rows: str = "tr"

    lesson_date: str = "td.datum_vyuky"
    lesson_student: str = "td.prijmeni"
    lesson_link: str = "td.zapsat button"


@dataclass(frozen=True)
class StudentSelectors:
    """Selectors for the student list page."""

    students_table: str = "#zarazeni_zaci > table"
    student_rows: str = "#zarazeni_zaci > table > tbody > tr"

    # Last name cell and the first name cell right after it
    name_cells: str = "td.prijmeni, td.prijmeni + td"


@dataclass(frozen=True)
class StaffSelectors:
    """Selectors for the staff list page."""

    staff_table: str = "table#tabulka_zamestnancu"
    rows: str = "table#tabulka_zamestnancu tbody tr"

    last_name: str = "td.prijmeni"
    first_name: str = "td.prijmeni + td"
    id_input: str = "td.prijmeni input[name=\"zamestnanci[]\"]"


@dataclass(frozen=True)
class DocumentSelectors:
    """Selectors for a teacher's documents page."""

    # Option value is "<studentId>_<classId>", text "<Last> <First> (<subject>)"
    class_select: str = "select#zobrazit_tridni_knihu"
    class_options: str = "select#zobrazit_tridni_knihu option:not([value=\"\"])"


@dataclass(frozen=True)
class ClassLogSelectors:
    """Selectors for a class log page."""

    # First table only
    records_table: str = "table.latka"
    record_rows: str = "tbody tr:not(.nevyplneno)"

    attendance: str = "td.dochazka"
    date: str = "td.datum"
    topic: str = "td.probirana_latka"

    present_mark: str = "I"


class IzusSelectors:
    """
    Centralized selectors for the iZUS portal.

    Examples:
        >>> selectors = IzusSelectors()
        >>> selectors.index.lesson_date
        'td.datum_vyuky'
    """

    def __init__(self):
        """Initialize selector groups."""
        self.endpoints = Endpoints()
        self.index = IndexSelectors()
        self.students = StudentSelectors()
        self.staff = StaffSelectors()
        self.documents = DocumentSelectors()
        self.class_log = ClassLogSelectors()


# Singleton instance for convenience
selectors = IzusSelectors()
