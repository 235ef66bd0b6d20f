from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.constants import DEFAULT_SUBSCRIPTION_POLL_SECONDS
from ..core.exceptions import ConcurrentUpdateError, NotFoundError, StoreError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import all_rows, db_cursor, dump_json_column, first_row, load_json_column
from .document_store import Document, DocumentListener, Unsubscribe

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


def _to_document(row: Dict[str, Any]) -> Document:
    return Document(doc_id=str(row["doc_id"]), version=int(row["version"]), data=load_json_column(row["body"]))


class MySQLDocumentStore:
    """JSON documents in a single MySQL table.

    Writes run in one transaction: the row is locked with SELECT ... FOR UPDATE,
    the fields are merged in Python and written back with a version guard.

    Subscriptions are notified right after local writes. Changes made by other
    processes are picked up by a background poller that compares versions every
    `poll_seconds`.
    """

    def __init__(self, conn_factory: DatabaseConnection, *, poll_seconds: float = DEFAULT_SUBSCRIPTION_POLL_SECONDS):
        self._conn_factory = conn_factory
        self._poll_seconds = float(poll_seconds)
        self._lock = threading.Lock()
        self._listeners: Dict[_Key, List[DocumentListener]] = {}
        self._seen_versions: Dict[_Key, int] = {}
        self._poller: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT doc_id, body, version
                FROM documents
                WHERE collection=%s AND doc_id=%s
                """,
                (collection, doc_id),
            )
            row = first_row(cur)
            return _to_document(row) if row else None

    def update_document(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT doc_id, body, version
                FROM documents
                WHERE collection=%s AND doc_id=%s
                FOR UPDATE
                """,
                (collection, doc_id),
            )
            row = first_row(cur)
            if not row:
                raise NotFoundError(f"Document {collection}/{doc_id} does not exist")

            current = _to_document(row)
            if expected_version is not None and current.version != expected_version:
                raise ConcurrentUpdateError(
                    f"Document {collection}/{doc_id} is at version {current.version}, expected {expected_version}"
                )

            merged = dict(current.data)
            merged.update(fields)
            cur.execute(
                """
                UPDATE documents
                SET body=%s, version=version+1
                WHERE collection=%s AND doc_id=%s AND version=%s
                """,
                (dump_json_column(merged), collection, doc_id, current.version),
            )
            if cur.rowcount != 1:
                raise ConcurrentUpdateError(f"Document {collection}/{doc_id} changed during update")
            new_version = current.version + 1

        self._emit((collection, doc_id), Document(doc_id=doc_id, version=new_version, data=merged))
        return new_version

    def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO documents(collection, doc_id, body, version)
                VALUES(%s,%s,%s,1)
                ON DUPLICATE KEY UPDATE body=VALUES(body), version=version+1
                """,
                (collection, doc_id, dump_json_column(data)),
            )
        stored = self.get_document(collection, doc_id)
        if stored is None:
            raise StoreError(f"Document {collection}/{doc_id} vanished after write")
        self._emit((collection, doc_id), stored)
        return stored.version

    def list_documents(self, collection: str) -> Sequence[Document]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT doc_id, body, version
                FROM documents
                WHERE collection=%s
                ORDER BY doc_id
                """,
                (collection,),
            )
            return [_to_document(r) for r in all_rows(cur)]

    def subscribe(self, collection: str, doc_id: str, callback: DocumentListener) -> Unsubscribe:
        key = (collection, doc_id)
        current = self.get_document(collection, doc_id)
        with self._lock:
            self._listeners.setdefault(key, []).append(callback)
            self._seen_versions[key] = current.version if current else 0
            self._ensure_poller()
        callback(current)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key, [])
                if callback in listeners:
                    listeners.remove(callback)
                if not listeners:
                    self._listeners.pop(key, None)
                    self._seen_versions.pop(key, None)

        return unsubscribe

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the poller and drop all subscriptions."""
        self._stop.set()
        with self._lock:
            poller, self._poller = self._poller, None
            self._listeners.clear()
            self._seen_versions.clear()
        if poller is not None:
            poller.join(timeout)

    def _emit(self, key: _Key, document: Optional[Document]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(key, []))
            if key in self._seen_versions:
                self._seen_versions[key] = document.version if document else 0
        for listener in listeners:
            try:
                listener(document)
            except Exception:
                logger.exception("Document listener failed for %s/%s", key[0], key[1])

    def _ensure_poller(self) -> None:
        if self._poller is not None and self._poller.is_alive():
            return
        self._stop.clear()
        self._poller = threading.Thread(target=self._poll_loop, name="document-store-poller", daemon=True)
        self._poller.start()

    def _poll_loop(self) -> None:
        while not self._stop.wait(self._poll_seconds):
            with self._lock:
                watched = dict(self._seen_versions)
            for key, seen in watched.items():
                try:
                    document = self.get_document(*key)
                except StoreError as exc:
                    logger.warning("Polling %s/%s failed: %s", key[0], key[1], exc)
                    continue
                version = document.version if document else 0
                if version != seen:
                    self._emit(key, document)
