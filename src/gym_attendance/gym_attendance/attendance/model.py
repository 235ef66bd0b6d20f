from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Sequence, Tuple

from ..common.datetime_utils import format_date, is_closed_day, parse_iso_date
from ..common.validators import require_non_empty
from ..core.constants import FIELD_DEPENDENT_ID, FIELD_PRESENCE_HISTORY
from ..core.enums import PersonKind, PresenceState
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class PersonRef:
    """Addresses a presence history: a member, or one of the member's dependents."""

    member_id: str
    dependent_id: Optional[str] = None

    @property
    def kind(self) -> PersonKind:
        return PersonKind.DEPENDENT if self.dependent_id is not None else PersonKind.MEMBER

    def __str__(self) -> str:
        if self.dependent_id is not None:
            return f"{self.member_id}/{self.dependent_id}"
        return self.member_id


@dataclass(frozen=True)
class RecordRef:
    """Addresses one presence record: (member, dependent?, date).

    Text form: `member:<memberId>:<date>` or
    `dependent:<memberId>:<dependentId>:<date>`.
    """

    person: PersonRef
    date: date

    def encode(self) -> str:
        day = format_date(self.date)
        if self.person.kind == PersonKind.DEPENDENT:
            return f"{PersonKind.DEPENDENT.value}:{self.person.member_id}:{self.person.dependent_id}:{day}"
        return f"{PersonKind.MEMBER.value}:{self.person.member_id}:{day}"

    @classmethod
    def parse(cls, value: str) -> "RecordRef":
        parts = require_non_empty(value, "Record reference").split(":")
        kind = parts[0]
        if kind == PersonKind.MEMBER.value and len(parts) == 3:
            member_id = require_non_empty(parts[1], "Member id")
            return cls(PersonRef(member_id), parse_iso_date(parts[2]))
        if kind == PersonKind.DEPENDENT.value and len(parts) == 4:
            member_id = require_non_empty(parts[1], "Member id")
            dependent_id = require_non_empty(parts[2], "Dependent id")
            return cls(PersonRef(member_id, dependent_id), parse_iso_date(parts[3]))
        raise ValidationError(f"Invalid record reference: {value!r}")


@dataclass(frozen=True)
class PresenceRecord:
    """Domain entity: one person's attendance on one calendar day.

    A stored record is either checked in or confirmed; "absent" is the lack
    of a record and cannot be stored.
    """

    date: date
    state: PresenceState = PresenceState.CHECKED_IN

    def __post_init__(self):
        if self.state == PresenceState.ABSENT:
            raise ValidationError("An absent day has no presence record")

    @property
    def confirmed(self) -> bool:
        return self.state == PresenceState.CONFIRMED

    def confirm(self) -> "PresenceRecord":
        return replace(self, state=PresenceState.CONFIRMED)

    def to_entry(self) -> Dict[str, Any]:
        return {"date": format_date(self.date), "confirmed": self.confirmed}

    @classmethod
    def from_entry(cls, entry: Any) -> Optional["PresenceRecord"]:
        """Parse a stored entry; returns None for entries that cannot be read.

        Older documents stored bare date strings, which count as unconfirmed
        check-ins.
        """
        if isinstance(entry, str):
            raw_date, confirmed = entry, False
        elif isinstance(entry, dict):
            raw_date, confirmed = entry.get("date"), bool(entry.get("confirmed", False))
        else:
            return None
        try:
            day = parse_iso_date(raw_date)
        except ValidationError:
            return None
        return cls(day, PresenceState.CONFIRMED if confirmed else PresenceState.CHECKED_IN)


@dataclass(frozen=True)
class PresenceHistory:
    """Immutable set of presence records keyed by date, newest first."""

    records: Tuple[PresenceRecord, ...] = ()

    def __post_init__(self):
        by_date: Dict[date, PresenceRecord] = {}
        for record in self.records:
            existing = by_date.get(record.date)
            if existing is None or (record.confirmed and not existing.confirmed):
                by_date[record.date] = record
        ordered = tuple(sorted(by_date.values(), key=lambda r: r.date, reverse=True))
        object.__setattr__(self, "records", ordered)

    @classmethod
    def from_entries(cls, entries: Optional[Iterable[Any]]) -> "PresenceHistory":
        parsed = (PresenceRecord.from_entry(e) for e in (entries or []))
        return cls(tuple(r for r in parsed if r is not None))

    def to_entries(self) -> list:
        # Stored oldest first, matching append order.
        return [r.to_entry() for r in reversed(self.records)]

    def __iter__(self) -> Iterator[PresenceRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def get(self, day: date) -> Optional[PresenceRecord]:
        for record in self.records:
            if record.date == day:
                return record
        return None

    def state_on(self, day: date) -> PresenceState:
        record = self.get(day)
        return record.state if record else PresenceState.ABSENT

    @property
    def latest(self) -> Optional[PresenceRecord]:
        return self.records[0] if self.records else None

    def with_check_in(self, day: date) -> "PresenceHistory":
        if self.get(day) is not None:
            raise ValidationError(f"Already checked in on {format_date(day)}")
        return PresenceHistory(self.records + (PresenceRecord(day),))

    def with_confirmed(self, day: date) -> "PresenceHistory":
        record = self.get(day)
        if record is None:
            raise ValidationError(f"No check-in on {format_date(day)}")
        return PresenceHistory(tuple(r.confirm() if r.date == day else r for r in self.records))

    def keep(self, predicate: Callable[[PresenceRecord], bool]) -> "PresenceHistory":
        return PresenceHistory(tuple(r for r in self.records if predicate(r)))

    def between(self, start: date, end: date) -> "PresenceHistory":
        return self.keep(lambda r: start <= r.date <= end)


@dataclass(frozen=True)
class DependentPresence:
    dependent_id: str
    name: str
    modalities: Tuple[str, ...]
    history: PresenceHistory


@dataclass(frozen=True)
class MemberPresence:
    """Read-model of one member document, as far as attendance is concerned.

    `raw_history` and `raw_dependents` keep the stored entries exactly as read,
    so writers can tell whether normalization changed anything and can rewrite
    the dependents list without losing fields this package does not model.
    """

    member_id: str
    version: int
    name: str
    modalities: Tuple[str, ...]
    history: PresenceHistory
    dependents: Tuple[DependentPresence, ...] = ()
    raw_history: Tuple[Any, ...] = ()
    raw_dependents: Tuple[Dict[str, Any], ...] = field(default=(), repr=False)

    def find_dependent(self, dependent_id: str) -> Optional[DependentPresence]:
        for dependent in self.dependents:
            if dependent.dependent_id == dependent_id:
                return dependent
        return None

    def has_person(self, person: PersonRef) -> bool:
        if person.dependent_id is None:
            return True
        return self.find_dependent(person.dependent_id) is not None

    def history_for(self, person: PersonRef) -> Optional[PresenceHistory]:
        if person.dependent_id is None:
            return self.history
        dependent = self.find_dependent(person.dependent_id)
        return dependent.history if dependent else None

    def raw_history_for(self, person: PersonRef) -> Sequence[Any]:
        if person.dependent_id is None:
            return self.raw_history
        for raw in self.raw_dependents:
            if str(raw.get(FIELD_DEPENDENT_ID)) == person.dependent_id:
                return tuple(raw.get(FIELD_PRESENCE_HISTORY) or ())
        return ()

    def people(self) -> Iterator[Tuple[PersonRef, Optional[DependentPresence], PresenceHistory]]:
        yield PersonRef(self.member_id), None, self.history
        for dependent in self.dependents:
            yield PersonRef(self.member_id, dependent.dependent_id), dependent, dependent.history


@dataclass(frozen=True)
class PresenceStatus:
    """Derived, never persisted, state for one person."""

    today: date
    is_checked_in_today: bool
    is_confirmed_today: bool
    is_new_day: bool
    last_check_in_date: Optional[date]
    check_in_pending: bool
    total: int
    confirmed: int
    percentage: int
    semester_label: str
    semester_range_label: str

    @property
    def year(self) -> int:
        return self.today.year

    @property
    def can_check_in(self) -> bool:
        return self.is_new_day and not self.check_in_pending and not is_closed_day(self.today)


@dataclass(frozen=True)
class PresenceView:
    person: PersonRef
    records: Tuple[PresenceRecord, ...]
    status: PresenceStatus


@dataclass(frozen=True)
class ConfirmAllResult:
    confirmed_count: int
    documents_written: int = 0
    failed_member_ids: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.failed_member_ids
