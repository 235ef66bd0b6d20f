from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.exceptions import ConcurrentUpdateError, NotFoundError
from .document_store import Document, DocumentListener, Unsubscribe

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


class InMemoryDocumentStore:
    """Thread-safe, process-local document store.

    Used by the `testing` settings and by tests. Every read hands out a deep
    copy so callers can never mutate stored state behind the store's back.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._docs: Dict[_Key, Tuple[int, Dict[str, Any]]] = {}
        self._listeners: Dict[_Key, List[DocumentListener]] = {}

    def _snapshot(self, key: _Key) -> Optional[Document]:
        entry = self._docs.get(key)
        if entry is None:
            return None
        version, data = entry
        return Document(doc_id=key[1], version=version, data=copy.deepcopy(data))

    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            return self._snapshot((collection, doc_id))

    def update_document(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        key = (collection, doc_id)
        with self._lock:
            entry = self._docs.get(key)
            if entry is None:
                raise NotFoundError(f"Document {collection}/{doc_id} does not exist")
            version, data = entry
            if expected_version is not None and expected_version != version:
                raise ConcurrentUpdateError(
                    f"Document {collection}/{doc_id} is at version {version}, expected {expected_version}"
                )
            merged = dict(data)
            merged.update(copy.deepcopy(fields))
            new_version = version + 1
            self._docs[key] = (new_version, merged)
        self._notify(key)
        return new_version

    def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> int:
        key = (collection, doc_id)
        with self._lock:
            entry = self._docs.get(key)
            new_version = (entry[0] + 1) if entry else 1
            self._docs[key] = (new_version, copy.deepcopy(data))
        self._notify(key)
        return new_version

    def list_documents(self, collection: str) -> Sequence[Document]:
        with self._lock:
            keys = sorted(k for k in self._docs if k[0] == collection)
            return [doc for doc in (self._snapshot(k) for k in keys) if doc is not None]

    def subscribe(self, collection: str, doc_id: str, callback: DocumentListener) -> Unsubscribe:
        key = (collection, doc_id)
        with self._lock:
            self._listeners.setdefault(key, []).append(callback)
            current = self._snapshot(key)
        callback(current)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def close(self) -> None:
        with self._lock:
            self._listeners.clear()

    def _notify(self, key: _Key) -> None:
        # Listeners run outside the lock so they may read or write the store.
        with self._lock:
            listeners = list(self._listeners.get(key, []))
            snapshot = self._snapshot(key)
        for listener in listeners:
            try:
                listener(copy.deepcopy(snapshot) if snapshot else None)
            except Exception:
                logger.exception("Document listener failed for %s/%s", key[0], key[1])
