from __future__ import annotations

from enum import Enum


class PresenceState(str, Enum):
    """Two-phase attendance state of one person on one day."""

    ABSENT = "ABSENT"
    CHECKED_IN = "CHECKED_IN"
    CONFIRMED = "CONFIRMED"


class PersonKind(str, Enum):
    """Whether a presence history belongs to the member or to a dependent."""

    MEMBER = "member"
    DEPENDENT = "dependent"


class StoreBackend(str, Enum):
    MYSQL = "mysql"
    MEMORY = "memory"
