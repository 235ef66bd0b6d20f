from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..core.constants import (
    FIELD_DEPENDENT_ID,
    FIELD_DEPENDENTS,
    FIELD_MODALITIES,
    FIELD_NAME,
    FIELD_PRESENCE_HISTORY,
    MEMBERS_COLLECTION,
)
from ..core.exceptions import NotFoundError
from ..store.document_store import Document, DocumentStore
from .model import DependentPresence, MemberPresence, PersonRef, PresenceHistory
from .repository import MemberListener, PresenceRepository


def _modalities(value: Any) -> tuple:
    # Modalities are stored either as plain names or as {"modality": name} objects.
    items = []
    for item in value or []:
        if isinstance(item, dict):
            item = item.get("modality") or item.get("name")
        if item:
            items.append(str(item))
    return tuple(items)


def to_member_presence(document: Document) -> MemberPresence:
    data = document.data
    raw_dependents = tuple(d for d in (data.get(FIELD_DEPENDENTS) or []) if isinstance(d, dict))
    dependents = tuple(
        DependentPresence(
            dependent_id=str(d.get(FIELD_DEPENDENT_ID)),
            name=str(d.get(FIELD_NAME) or ""),
            modalities=_modalities(d.get(FIELD_MODALITIES)),
            history=PresenceHistory.from_entries(d.get(FIELD_PRESENCE_HISTORY)),
        )
        for d in raw_dependents
        if d.get(FIELD_DEPENDENT_ID) is not None
    )
    return MemberPresence(
        member_id=document.doc_id,
        version=document.version,
        name=str(data.get(FIELD_NAME) or ""),
        modalities=_modalities(data.get(FIELD_MODALITIES)),
        history=PresenceHistory.from_entries(data.get(FIELD_PRESENCE_HISTORY)),
        dependents=dependents,
        raw_history=tuple(data.get(FIELD_PRESENCE_HISTORY) or ()),
        raw_dependents=raw_dependents,
    )


class DocumentPresenceRepository(PresenceRepository):
    """Presence histories embedded in member documents.

    A dependent has no address of its own: changing one dependent's history
    rewrites the whole `dependents` list of the parent document.
    """

    def __init__(self, store: DocumentStore, *, collection: str = MEMBERS_COLLECTION):
        self._store = store
        self._collection = collection

    def get_member(self, member_id: str) -> Optional[MemberPresence]:
        document = self._store.get_document(self._collection, member_id)
        return to_member_presence(document) if document else None

    def list_members(self) -> Sequence[MemberPresence]:
        return [to_member_presence(d) for d in self._store.list_documents(self._collection)]

    def save_histories(self, member: MemberPresence, histories: Mapping[PersonRef, PresenceHistory]) -> int:
        fields: Dict[str, Any] = {}
        dependents: Optional[List[Dict[str, Any]]] = None

        for person, history in histories.items():
            if person.member_id != member.member_id:
                raise ValueError(f"{person} does not belong to member {member.member_id}")
            if person.dependent_id is None:
                fields[FIELD_PRESENCE_HISTORY] = history.to_entries()
                continue

            if dependents is None:
                dependents = [dict(d) for d in member.raw_dependents]
            index = next(
                (i for i, d in enumerate(dependents) if str(d.get(FIELD_DEPENDENT_ID)) == person.dependent_id),
                None,
            )
            if index is None:
                raise NotFoundError(f"Dependent {person} not found")
            dependents[index] = {**dependents[index], FIELD_PRESENCE_HISTORY: history.to_entries()}

        if dependents is not None:
            fields[FIELD_DEPENDENTS] = dependents
        if not fields:
            return member.version

        return self._store.update_document(
            self._collection,
            member.member_id,
            fields,
            expected_version=member.version,
        )

    def subscribe(self, member_id: str, callback: MemberListener) -> Callable[[], None]:
        def on_document(document: Optional[Document]) -> None:
            callback(to_member_presence(document) if document else None)

        return self._store.subscribe(self._collection, member_id, on_document)
