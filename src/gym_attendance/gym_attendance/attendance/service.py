from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Callable, List, Optional, Set

from ..common.datetime_utils import (
    count_business_days,
    format_date,
    is_closed_day,
    is_valid_attendance_date,
    semester_window,
    today as local_today,
)
from ..core.constants import SWEEP_MAX_ATTEMPTS
from ..core.enums import PresenceState
from ..core.exceptions import ConcurrentUpdateError, NotFoundError, StoreError
from .calendar_grid import CalendarCell, build_month_grid
from .model import (
    ConfirmAllResult,
    MemberPresence,
    PersonRef,
    PresenceHistory,
    PresenceStatus,
    PresenceView,
    RecordRef,
)
from .repository import PresenceRepository

logger = logging.getLogger(__name__)


def percentage_of(numerator: int, denominator: int) -> int:
    """Whole-number percentage, rounded half up and capped to [0, 100]."""
    if denominator <= 0 or numerator <= 0:
        return 0
    return min(100, (200 * numerator + denominator) // (2 * denominator))


def semester_percentage(history: PresenceHistory, reference: date) -> int:
    window = semester_window(reference)
    end = min(window.end, reference)
    attended = len(history.between(window.start, end))
    return percentage_of(attended, count_business_days(window.start, end))


class AttendanceService:
    """Check-in, confirmation, aggregation and pruning of presence records.

    Every mutation re-reads the member document and writes it back guarded by
    the version it read, so a concurrent writer makes the later write fail
    instead of silently overwriting it.
    """

    def __init__(
        self,
        presence: PresenceRepository,
        *,
        clock: Callable[[], date] = local_today,
        sweep_max_attempts: int = SWEEP_MAX_ATTEMPTS,
    ):
        self._presence = presence
        self._clock = clock
        self._sweep_max_attempts = max(1, int(sweep_max_attempts))
        self._in_flight_guard = threading.Lock()
        self._in_flight: Set[PersonRef] = set()

    def today(self) -> date:
        return self._clock()

    def _today(self, today: Optional[date]) -> date:
        return today or self._clock()

    def _begin_check_in(self, person: PersonRef) -> bool:
        # An entry exists only while that person's check-in runs.
        with self._in_flight_guard:
            if person in self._in_flight:
                return False
            self._in_flight.add(person)
            return True

    def _end_check_in(self, person: PersonRef) -> None:
        with self._in_flight_guard:
            self._in_flight.discard(person)

    def _require_member(self, person: PersonRef) -> MemberPresence:
        member = self._presence.get_member(person.member_id)
        if member is None:
            raise NotFoundError(f"Member {person.member_id} not found")
        if not member.has_person(person):
            raise NotFoundError(f"Dependent {person} not found")
        return member

    def is_check_in_pending(self, person: PersonRef) -> bool:
        with self._in_flight_guard:
            return person in self._in_flight

    # Check-in / confirmation

    def check_in(self, person: PersonRef, *, today: Optional[date] = None) -> bool:
        day = self._today(today)
        if is_closed_day(day):
            logger.debug("Check-in refused for %s: closed on %s", person, format_date(day))
            return False

        if not self._begin_check_in(person):
            logger.debug("Check-in already in flight for %s", person)
            return False
        try:
            member = self._require_member(person)
            history = member.history_for(person) or PresenceHistory()
            if history.get(day) is not None:
                logger.debug("Check-in refused for %s: already checked in on %s", person, format_date(day))
                return False
            self._presence.save_histories(member, {person: history.with_check_in(day)})
        except ConcurrentUpdateError as exc:
            logger.warning("Check-in for %s lost a concurrent update: %s", person, exc)
            return False
        except StoreError as exc:
            logger.error("Check-in for %s failed: %s", person, exc)
            return False
        finally:
            self._end_check_in(person)

        logger.info("Checked in %s on %s", person, format_date(day))
        return True

    def confirm(self, ref: RecordRef) -> bool:
        try:
            member = self._require_member(ref.person)
            history = member.history_for(ref.person) or PresenceHistory()
            record = history.get(ref.date)
            if record is None:
                raise NotFoundError(f"No presence record {ref.encode()}")
            if record.confirmed:
                return True
            self._presence.save_histories(member, {ref.person: history.with_confirmed(ref.date)})
        except ConcurrentUpdateError as exc:
            logger.warning("Confirmation of %s lost a concurrent update: %s", ref.encode(), exc)
            return False
        except StoreError as exc:
            logger.error("Confirmation of %s failed: %s", ref.encode(), exc)
            return False

        logger.info("Confirmed %s", ref.encode())
        return True

    def confirm_all_today(self, *, today: Optional[date] = None) -> ConfirmAllResult:
        """Confirm every pending record dated today, one write per member document.

        Raises StoreError only when the member listing itself fails; failures on
        single documents are reported in the result.
        """
        day = self._today(today)
        confirmed = written = 0
        failed: List[str] = []

        for member in self._presence.list_members():
            if not any(h.state_on(day) == PresenceState.CHECKED_IN for _, _, h in member.people()):
                continue
            try:
                count = self._confirm_member_day(member.member_id, day)
            except (StoreError, NotFoundError) as exc:
                logger.error("Bulk confirmation skipped member %s: %s", member.member_id, exc)
                failed.append(member.member_id)
                continue
            if count:
                confirmed += count
                written += 1

        logger.info("Bulk confirmation on %s: %d records in %d documents", format_date(day), confirmed, written)
        return ConfirmAllResult(confirmed_count=confirmed, documents_written=written, failed_member_ids=tuple(failed))

    def _confirm_member_day(self, member_id: str, day: date) -> int:
        for attempt in range(1, self._sweep_max_attempts + 1):
            member = self._presence.get_member(member_id)
            if member is None:
                return 0
            updates = {
                person: history.with_confirmed(day)
                for person, _, history in member.people()
                if history.state_on(day) == PresenceState.CHECKED_IN
            }
            if not updates:
                return 0
            try:
                self._presence.save_histories(member, updates)
                return len(updates)
            except ConcurrentUpdateError:
                logger.warning("Member %s changed during bulk confirmation (attempt %d)", member_id, attempt)
        raise ConcurrentUpdateError(
            f"Member {member_id} kept changing after {self._sweep_max_attempts} attempts"
        )

    def state_on(self, person: PersonRef, day: Optional[date] = None) -> PresenceState:
        member = self._require_member(person)
        history = member.history_for(person) or PresenceHistory()
        return history.state_on(self._today(day))

    # Pruning

    def reconcile(self, member: MemberPresence, person: PersonRef, *, today: Optional[date] = None) -> PresenceHistory:
        """History of `person` limited to the current attendance year.

        Out-of-window and unreadable entries are removed from the stored
        document as a side effect; that write is best-effort.
        """
        day = self._today(today)
        stored = list(member.raw_history_for(person))

        if is_closed_day(day):
            if stored:
                self._rewrite_history(member, person, PresenceHistory(), reason="new attendance year")
            return PresenceHistory()

        history = member.history_for(person) or PresenceHistory()
        valid = history.keep(lambda r: is_valid_attendance_date(r.date, current_year=day.year))
        if valid.to_entries() != stored:
            self._rewrite_history(member, person, valid, reason="pruned %d entries" % (len(stored) - len(valid)))
        return valid

    def _rewrite_history(self, member: MemberPresence, person: PersonRef, history: PresenceHistory, *, reason: str) -> None:
        try:
            self._presence.save_histories(member, {person: history})
        except (StoreError, NotFoundError) as exc:
            logger.warning("Could not rewrite presence history of %s (%s): %s", person, reason, exc)
            return
        logger.info("Rewrote presence history of %s: %s", person, reason)

    def load_history(self, person: PersonRef, *, today: Optional[date] = None) -> PresenceHistory:
        member = self._require_member(person)
        return self.reconcile(member, person, today=today)

    # Aggregation

    def summarize(self, history: PresenceHistory, *, today: date, pending: bool = False) -> PresenceStatus:
        window = semester_window(today)
        in_window = history.between(window.start, min(window.end, today))
        latest = history.latest
        record_today = history.get(today)
        return PresenceStatus(
            today=today,
            is_checked_in_today=record_today is not None,
            is_confirmed_today=bool(record_today and record_today.confirmed),
            is_new_day=latest is None or latest.date < today,
            last_check_in_date=latest.date if latest else None,
            check_in_pending=pending,
            total=len(in_window),
            confirmed=sum(1 for r in in_window if r.confirmed),
            percentage=semester_percentage(history, today),
            semester_label=window.label,
            semester_range_label=window.range_label,
        )

    def attendance_percentage(self, person: PersonRef, reference_date: Optional[date] = None) -> int:
        reference = self._today(reference_date)
        member = self._require_member(person)
        return semester_percentage(member.history_for(person) or PresenceHistory(), reference)

    def status(self, person: PersonRef, *, today: Optional[date] = None) -> PresenceStatus:
        day = self._today(today)
        history = self.load_history(person, today=day)
        return self.summarize(history, today=day, pending=self.is_check_in_pending(person))

    def view(self, member: Optional[MemberPresence], person: PersonRef, *, today: Optional[date] = None) -> PresenceView:
        day = self._today(today)
        if member is None or not member.has_person(person):
            history = PresenceHistory()
        else:
            history = self.reconcile(member, person, today=day)
        status = self.summarize(history, today=day, pending=self.is_check_in_pending(person))
        return PresenceView(person=person, records=history.records, status=status)

    def month_grid(self, person: PersonRef, month: date, *, today: Optional[date] = None) -> List[CalendarCell]:
        day = self._today(today)
        return build_month_grid(self.load_history(person, today=day), month, today=day)
