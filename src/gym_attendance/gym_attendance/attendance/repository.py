from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol, Sequence

from .model import MemberPresence, PersonRef, PresenceHistory

MemberListener = Callable[[Optional[MemberPresence]], None]


class PresenceRepository(Protocol):
    def get_member(self, member_id: str) -> Optional[MemberPresence]:
        raise NotImplementedError

    def list_members(self) -> Sequence[MemberPresence]:
        raise NotImplementedError

    def save_histories(self, member: MemberPresence, histories: Mapping[PersonRef, PresenceHistory]) -> int:
        """Write the given histories back in a single document update.

        The update is guarded by `member.version`; a concurrent change makes it
        fail with ConcurrentUpdateError.
        """

        raise NotImplementedError

    def subscribe(self, member_id: str, callback: MemberListener) -> Callable[[], None]:
        raise NotImplementedError
