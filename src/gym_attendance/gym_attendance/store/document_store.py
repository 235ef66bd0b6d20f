from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

DocumentListener = Callable[[Optional["Document"]], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class Document:
    """Snapshot of one stored document.

    `data` is a private copy; callers may read it freely but writes go through
    `DocumentStore.update_document`.
    """

    doc_id: str
    version: int
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(Protocol):
    """Whole-document store contract.

    `update_document` merges the given top-level fields atomically. When
    `expected_version` is given and the stored version differs, the write is
    rejected with ConcurrentUpdateError.
    """

    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    def update_document(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        raise NotImplementedError

    def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> int:
        raise NotImplementedError

    def list_documents(self, collection: str) -> Sequence[Document]:
        raise NotImplementedError

    def subscribe(self, collection: str, doc_id: str, callback: DocumentListener) -> Unsubscribe:
        """Call `callback` with the current snapshot now and after every change."""

        raise NotImplementedError

    def close(self) -> None:
        """Release background resources and drop subscriptions."""

        raise NotImplementedError
