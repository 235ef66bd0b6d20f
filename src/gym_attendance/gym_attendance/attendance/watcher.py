from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Callable, Optional

from ..common.datetime_utils import today as local_today
from .model import MemberPresence, PersonRef, PresenceView
from .repository import PresenceRepository
from .service import AttendanceService

logger = logging.getLogger(__name__)


class PresenceWatcher:
    """Keeps one person's presence view current from store change notifications.

    Each snapshot is pruned and summarized by the service; the resulting view
    is immutable and replaces the previous one.
    """

    def __init__(
        self,
        service: AttendanceService,
        presence: PresenceRepository,
        person: PersonRef,
        on_change: Optional[Callable[[PresenceView], None]] = None,
        *,
        clock: Callable[[], date] = local_today,
    ):
        self._service = service
        self._presence = presence
        self._person = person
        self._on_change = on_change
        self._clock = clock
        self._lock = threading.Lock()
        self._view: Optional[PresenceView] = None
        self._version: Optional[int] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def view(self) -> Optional[PresenceView]:
        with self._lock:
            return self._view

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> "PresenceWatcher":
        if self._unsubscribe is None:
            self._unsubscribe = self._presence.subscribe(self._person.member_id, self._handle)
        return self

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _is_stale(self, member: Optional[MemberPresence]) -> bool:
        # Callers hold self._lock. A missing document always applies.
        return member is not None and self._version is not None and member.version < self._version

    def _handle(self, member: Optional[MemberPresence]) -> None:
        if member is None:
            logger.debug("Member document for %s does not exist", self._person)
        with self._lock:
            if self._is_stale(member):
                logger.debug("Dropped stale snapshot v%d for %s", member.version, self._person)
                return

        view = self._service.view(member, self._person, today=self._clock())
        with self._lock:
            # A newer snapshot may have been applied while this one was being computed.
            if self._is_stale(member):
                return
            self._version = member.version if member is not None else None
            self._view = view
        if self._on_change is not None:
            self._on_change(view)
