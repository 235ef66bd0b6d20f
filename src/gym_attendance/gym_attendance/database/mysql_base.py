from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple

import mysql.connector

from ..core.exceptions import StoreError
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[Tuple[Any, Any]]:
    """One transaction: commit on success, roll back on any error.

    Driver errors surface as StoreError so callers only deal with domain errors.
    """
    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as exc:
        raise StoreError(f"Document store unreachable: {exc}") from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        raise StoreError(f"Document store rejected the operation: {exc}") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def first_row(cur) -> Optional[Dict[str, Any]]:
    return cur.fetchone() or None


def all_rows(cur) -> list:
    return list(cur.fetchall() or [])


def load_json_column(value: Any) -> Dict[str, Any]:
    """Decode a JSON column across connector builds.

    mysql-connector may hand back a JSON column as:
    - str
    - bytes / bytearray
    - an already decoded dict (C extension with some server versions)
    """
    if value is None:
        return {}
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        decoded = json.loads(value)
    else:
        decoded = value
    if not isinstance(decoded, dict):
        raise StoreError(f"Stored document body is not an object: {type(decoded).__name__}")
    return dict(decoded)


def dump_json_column(data: Dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
