from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional, Tuple

from ..common.datetime_utils import format_date, now_local, today as local_today
from ..core.constants import DEFAULT_DASHBOARD_REFRESH_SECONDS
from ..core.exceptions import StoreError
from .model import PersonRef, RecordRef
from .repository import PresenceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingPresence:
    """One row of the admin confirmation list."""

    ref: RecordRef
    member_name: str
    dependent_name: Optional[str]
    modalities: Tuple[str, ...]
    confirmed: bool

    @property
    def display_name(self) -> str:
        return self.dependent_name or self.member_name

    def to_dict(self) -> dict:
        person = self.ref.person
        return {
            "ref": self.ref.encode(),
            "kind": person.kind.value,
            "member_id": person.member_id,
            "member_name": self.member_name,
            "dependent_id": person.dependent_id,
            "dependent_name": self.dependent_name,
            "date": format_date(self.ref.date),
            "modalities": list(self.modalities),
            "confirmed": self.confirmed,
        }


@dataclass(frozen=True)
class DashboardStats:
    total: int = 0
    confirmed: int = 0
    pending: int = 0


@dataclass(frozen=True)
class DashboardSnapshot:
    day: date
    items: Tuple[PendingPresence, ...] = ()
    stats: DashboardStats = field(default_factory=DashboardStats)
    taken_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "date": format_date(self.day),
            "items": [i.to_dict() for i in self.items],
            "stats": {
                "total": self.stats.total,
                "confirmed": self.stats.confirmed,
                "pending": self.stats.pending,
            },
            "taken_at": self.taken_at.isoformat() if self.taken_at else None,
        }


class ConfirmationDashboard:
    """Scatter-gather of every member document into one list for a day."""

    def __init__(self, presence: PresenceRepository):
        self._presence = presence

    def collect(self, day: date) -> DashboardSnapshot:
        items = []
        for member in self._presence.list_members():
            for person, dependent, history in member.people():
                record = history.get(day)
                if record is None:
                    continue
                items.append(
                    PendingPresence(
                        ref=RecordRef(person, day),
                        member_name=member.name,
                        dependent_name=dependent.name if dependent else None,
                        modalities=dependent.modalities if dependent else member.modalities,
                        confirmed=record.confirmed,
                    )
                )

        items.sort(key=lambda i: (i.member_name.lower(), (i.dependent_name or "").lower(), _sort_key(i.ref.person)))
        confirmed = sum(1 for i in items if i.confirmed)
        return DashboardSnapshot(
            day=day,
            items=tuple(items),
            stats=DashboardStats(total=len(items), confirmed=confirmed, pending=len(items) - confirmed),
            taken_at=now_local(),
        )


def _sort_key(person: PersonRef) -> tuple:
    return (person.member_id, person.dependent_id or "")


class DashboardRefresher:
    """Re-scans the dashboard on a timer in a daemon thread.

    Each refresh builds a new snapshot and swaps it in; nothing is carried over
    between refreshes.
    """

    def __init__(
        self,
        dashboard: ConfirmationDashboard,
        interval_seconds: float = DEFAULT_DASHBOARD_REFRESH_SECONDS,
        *,
        clock: Callable[[], date] = local_today,
    ):
        self._dashboard = dashboard
        self._interval = float(interval_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._latest: Optional[DashboardSnapshot] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def latest(self) -> Optional[DashboardSnapshot]:
        with self._lock:
            return self._latest

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh(self) -> Optional[DashboardSnapshot]:
        try:
            snapshot = self._dashboard.collect(self._clock())
        except StoreError as exc:
            logger.error("Dashboard refresh failed: %s", exc)
            return None
        with self._lock:
            self._latest = snapshot
        return snapshot

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="dashboard-refresher", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        self.refresh()
        while not self._stop.wait(self._interval):
            self.refresh()
