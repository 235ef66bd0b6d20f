from datetime import date

import pytest

from src.gym_attendance.gym_attendance.attendance.model import PersonRef, PresenceHistory, PresenceRecord, RecordRef
from src.gym_attendance.gym_attendance.core.enums import PersonKind, PresenceState
from src.gym_attendance.gym_attendance.core.exceptions import ValidationError


def test_absent_record_cannot_be_built():
    with pytest.raises(ValidationError):
        PresenceRecord(date(2025, 3, 10), PresenceState.ABSENT)


def test_history_normalizes_stored_entries():
    history = PresenceHistory.from_entries(
        [
            "2025-01-10",
            {"date": "2025-01-15", "confirmed": True},
            {"date": "2025-01-15", "confirmed": False},
            {"date": "not-a-date"},
            42,
        ]
    )

    assert [r.date for r in history] == [date(2025, 1, 15), date(2025, 1, 10)]
    assert history.state_on(date(2025, 1, 15)) == PresenceState.CONFIRMED
    assert history.state_on(date(2025, 1, 10)) == PresenceState.CHECKED_IN
    assert history.state_on(date(2025, 1, 11)) == PresenceState.ABSENT
    assert history.to_entries() == [
        {"date": "2025-01-10", "confirmed": False},
        {"date": "2025-01-15", "confirmed": True},
    ]


def test_history_transitions_are_one_way():
    day = date(2025, 3, 10)
    history = PresenceHistory().with_check_in(day)

    with pytest.raises(ValidationError):
        history.with_check_in(day)

    confirmed = history.with_confirmed(day)
    assert confirmed.state_on(day) == PresenceState.CONFIRMED
    assert confirmed.with_confirmed(day) == confirmed

    with pytest.raises(ValidationError):
        history.with_confirmed(date(2025, 3, 11))


def test_record_ref_text_form():
    member_ref = RecordRef(PersonRef("m1"), date(2025, 3, 10))
    dependent_ref = RecordRef(PersonRef("m1", "d1"), date(2025, 3, 10))

    assert member_ref.encode() == "member:m1:2025-03-10"
    assert dependent_ref.encode() == "dependent:m1:d1:2025-03-10"
    assert RecordRef.parse("dependent:m1:d1:2025-03-10") == dependent_ref
    assert RecordRef.parse("member:m1:2025-03-10").person.kind == PersonKind.MEMBER


@pytest.mark.parametrize(
    "value",
    ["", "member:m1", "member::2025-03-10", "dependent:m1:2025-03-10", "coach:m1:2025-03-10", "member:m1:10-03-2025"],
)
def test_record_ref_rejects_malformed_text(value):
    with pytest.raises(ValidationError):
        RecordRef.parse(value)


def test_empty_dependent_id_is_never_the_member():
    person = PersonRef("m1", "")
    ref = RecordRef(person, date(2025, 3, 10))

    assert person.kind == PersonKind.DEPENDENT
    assert ref.encode() == "dependent:m1::2025-03-10"
    with pytest.raises(ValidationError):
        RecordRef.parse(ref.encode())
