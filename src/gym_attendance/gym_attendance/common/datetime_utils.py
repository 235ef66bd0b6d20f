from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..core.constants import CLOSED_DAY, CLOSED_MONTH
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class SemesterWindow:
    """One of the two fixed half-year ranges used for attendance percentages."""

    start: date
    end: date
    label: str
    range_label: str

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def today() -> date:
    return now_local().date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}")


def parse_month(value: str) -> date:
    """Parse YYYY-MM into the first day of that month."""
    try:
        return datetime.strptime(value, "%Y-%m").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid month (YYYY-MM): {value!r}")


def format_display_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def is_closed_day(value: date) -> bool:
    return value.month == CLOSED_MONTH and value.day == CLOSED_DAY


def is_valid_attendance_date(value: date, *, current_year: int) -> bool:
    if value.year != current_year:
        return False
    return not is_closed_day(value)


def count_business_days(start: date, end: date) -> int:
    """Count Monday..Saturday days in [start, end], skipping January 1st."""
    count = 0
    current = start
    while current <= end:
        # weekday(): Monday=0 .. Sunday=6
        if current.weekday() != 6 and not is_closed_day(current):
            count += 1
        current += timedelta(days=1)
    return count


def semester_window(reference: date) -> SemesterWindow:
    year = reference.year
    if reference.month <= 6:
        return SemesterWindow(
            start=date(year, 1, 2),
            end=date(year, 6, 30),
            label="1st Semester",
            range_label="Jan-Jun",
        )
    return SemesterWindow(
        start=date(year, 7, 1),
        end=date(year, 12, 31),
        label="2nd Semester",
        range_label="Jul-Dec",
    )
