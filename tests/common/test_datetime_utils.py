from datetime import date, timedelta

import pytest

from src.gym_attendance.gym_attendance.common.datetime_utils import (
    count_business_days,
    format_display_date,
    is_closed_day,
    is_valid_attendance_date,
    parse_iso_date,
    parse_month,
    semester_window,
)
from src.gym_attendance.gym_attendance.core.exceptions import ValidationError


def test_first_semester_business_days_exclude_sundays():
    start, end = date(2025, 1, 2), date(2025, 6, 30)
    total_days = (end - start).days + 1
    sundays = sum(1 for i in range(total_days) if (start + timedelta(days=i)).weekday() == 6)

    assert total_days == 180
    assert sundays == 26
    assert count_business_days(start, end) == total_days - sundays == 154


def test_business_days_skip_new_year():
    # 2025-01-01 is a Wednesday; Jan 2..4 are Thu, Fri, Sat.
    assert count_business_days(date(2025, 1, 1), date(2025, 1, 4)) == 3


def test_business_days_empty_range():
    assert count_business_days(date(2025, 1, 2), date(2025, 1, 1)) == 0


def test_semester_window_first_half():
    window = semester_window(date(2025, 6, 30))
    assert window.start == date(2025, 1, 2)
    assert window.end == date(2025, 6, 30)
    assert window.label == "1st Semester"
    assert window.range_label == "Jan-Jun"
    assert not window.contains(date(2025, 1, 1))


def test_semester_window_second_half():
    window = semester_window(date(2025, 7, 1))
    assert window.start == date(2025, 7, 1)
    assert window.end == date(2025, 12, 31)
    assert window.label == "2nd Semester"
    assert window.range_label == "Jul-Dec"


def test_valid_attendance_dates():
    assert is_valid_attendance_date(date(2025, 1, 2), current_year=2025)
    assert not is_valid_attendance_date(date(2025, 1, 1), current_year=2025)
    assert not is_valid_attendance_date(date(2024, 6, 1), current_year=2025)
    assert is_closed_day(date(2030, 1, 1))


def test_parsing_and_display():
    assert parse_iso_date("2025-03-10") == date(2025, 3, 10)
    assert parse_month("2025-03") == date(2025, 3, 1)
    assert format_display_date(date(2025, 3, 10)) == "10/03/2025"

    with pytest.raises(ValidationError):
        parse_iso_date("10/03/2025")
    with pytest.raises(ValidationError):
        parse_month("2025-13")
