from datetime import date

import pytest

from src.gym_attendance.gym_attendance.attendance.document_presence_repository import DocumentPresenceRepository
from src.gym_attendance.gym_attendance.attendance.model import PersonRef, PresenceHistory
from src.gym_attendance.gym_attendance.attendance.service import AttendanceService, percentage_of, semester_percentage
from src.gym_attendance.gym_attendance.store.memory_document_store import InMemoryDocumentStore


def _history(*days, confirmed=()):
    return PresenceHistory.from_entries([{"date": d, "confirmed": d in confirmed} for d in days])


@pytest.mark.parametrize(
    "numerator, denominator, expected",
    [(0, 0, 0), (3, 0, 0), (0, 8, 0), (1, 8, 13), (1, 3, 33), (2, 3, 67), (4, 3, 100)],
)
def test_percentage_rounding_and_bounds(numerator, denominator, expected):
    assert percentage_of(numerator, denominator) == expected


def test_percentage_counts_unconfirmed_check_ins_in_window():
    # Jan 2..10 2025 holds 8 business days (Jan 5 is a Sunday).
    history = _history("2024-12-30", "2025-01-02", "2025-01-03", "2025-01-06", "2025-01-07", confirmed=("2025-01-02",))

    assert semester_percentage(history, date(2025, 1, 10)) == 50


def test_percentage_is_zero_on_new_year():
    assert semester_percentage(_history("2025-01-01"), date(2025, 1, 1)) == 0


def test_percentage_is_capped_when_sundays_are_attended():
    history = _history("2025-01-02", "2025-01-03", "2025-01-04", "2025-01-05")

    assert semester_percentage(history, date(2025, 1, 5)) == 100


def test_second_semester_ignores_first_semester_records():
    # Jul 1 2025 is a Tuesday.
    history = _history("2025-06-30", "2025-07-01")

    assert semester_percentage(history, date(2025, 7, 3)) == 33


def test_status_flags_for_day_with_pending_check_in():
    store = InMemoryDocumentStore()
    store.put_document(
        "members",
        "m1",
        {
            "name": "Ana",
            "presenceHistory": [
                {"date": "2025-03-07", "confirmed": True},
                {"date": "2025-03-10", "confirmed": False},
            ],
        },
    )
    service = AttendanceService(DocumentPresenceRepository(store), clock=lambda: date(2025, 3, 10))

    status = service.status(PersonRef("m1"))

    assert status.is_checked_in_today
    assert not status.is_confirmed_today
    assert not status.is_new_day
    assert not status.can_check_in
    assert status.last_check_in_date == date(2025, 3, 10)
    assert (status.total, status.confirmed) == (2, 1)
    assert status.semester_label == "1st Semester"
    assert status.year == 2025
    assert status.percentage == service.attendance_percentage(PersonRef("m1"))


def test_status_on_new_day_allows_check_in():
    store = InMemoryDocumentStore()
    store.put_document("members", "m1", {"name": "Ana", "presenceHistory": [{"date": "2025-03-07", "confirmed": True}]})
    service = AttendanceService(DocumentPresenceRepository(store))

    status = service.status(PersonRef("m1"), today=date(2025, 3, 10))

    assert status.is_new_day
    assert status.can_check_in
    assert not status.is_checked_in_today
    assert status.last_check_in_date == date(2025, 3, 7)


def test_status_without_records():
    store = InMemoryDocumentStore()
    store.put_document("members", "m1", {"name": "Ana"})
    service = AttendanceService(DocumentPresenceRepository(store))

    status = service.status(PersonRef("m1"), today=date(2025, 1, 1))

    assert status.is_new_day
    assert status.last_check_in_date is None
    assert status.percentage == 0
    assert not status.can_check_in
