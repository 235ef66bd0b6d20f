from __future__ import annotations

import json
import re
from contextlib import closing
from pathlib import Path
from typing import Iterable, List

import mysql.connector

from ..core.exceptions import StoreError
from ..store.document_store import DocumentStore
from .connection import DatabaseConnection, DBConfig

DOCUMENTS_TABLE = "documents"

_DB_DIRECTIVE = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b.*?;\s*$")


def _schema_statements(sql: str) -> Iterable[str]:
    """Split a schema file into statements.

    CREATE DATABASE / USE lines are dropped so the file works under any
    database name, and `--` comment lines are removed. Quoted ';' is kept.
    """
    sql = _DB_DIRECTIVE.sub("", sql)
    body = "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))

    buf: List[str] = []
    quote = ""
    for ch in body:
        if ch in ("'", '"') and (not quote or quote == ch):
            quote = "" if quote else ch
        elif ch == ";" and not quote:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue
        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run(db_config: dict, statements: Iterable[str], *, with_database: bool = True) -> None:
    conn_factory = DatabaseConnection(DBConfig.from_dict(db_config))
    try:
        with closing(conn_factory.connect(with_database=with_database)) as conn:
            cur = conn.cursor()
            for stmt in statements:
                cur.execute(stmt)
            conn.commit()
    except mysql.connector.Error as exc:
        raise StoreError(f"Schema bootstrap failed: {exc}") from exc


def ensure_database_exists(db_config: dict) -> None:
    name = DBConfig.from_dict(db_config).database
    _run(
        db_config,
        [f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"],
        with_database=False,
    )


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    _run(db_config, list(_schema_statements(Path(schema_path).read_text(encoding="utf-8"))))


def list_tables(db_config: dict) -> list[str]:
    conn_factory = DatabaseConnection(DBConfig.from_dict(db_config))
    try:
        with closing(conn_factory.connect()) as conn:
            cur = conn.cursor()
            cur.execute("SHOW TABLES")
            return [row[0] for row in cur.fetchall()]
    except mysql.connector.Error as exc:
        raise StoreError(f"Could not list tables: {exc}") from exc


def seed_documents(store: DocumentStore, *, seed_path: str | Path) -> int:
    """Load demo member documents from a JSON file.

    The file maps collection names to {doc_id: document}. Existing documents
    with the same id are replaced.
    """
    payload = json.loads(Path(seed_path).read_text(encoding="utf-8"))
    count = 0
    for collection, documents in payload.items():
        for doc_id, data in documents.items():
            store.put_document(collection, str(doc_id), data)
            count += 1
    return count
