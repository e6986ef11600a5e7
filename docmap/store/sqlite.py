"""SQLite-backed document store.

Documents of every collection live in one 'document' table as JSON text,
keyed by (collection, id). Queries are translated from Mongo-style filters
by docmap.store.filters and evaluated with SQLite's JSON1 functions.

CONNECTION LIFECYCLE:
- Every session owns a fresh sqlite3 connection (isolated per call)
- The connection is created lazily on first use inside the 'with' block
- __exit__ commits on success, rolls back on exception, always closes
- WAL mode lets readers proceed while another session writes

WIRE FORMAT:
ObjectIds are stored as 24 character hex strings and datetimes as ISO 8601
strings. The id column is decoded back to ObjectId on read; every other
value comes back in its JSON form and is coerced by the document codec.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from pathlib import Path
from typing import Any, Sequence

from bson import ObjectId

from ..exceptions import DuplicateError
from ..schemas import get_sql_schema
from .base import DocumentStore, StoreSession
from .filters import (
    apply_projection,
    build_order_clause,
    build_where_clause,
    encode_value,
    json_path,
)

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def _encode_document(document: dict[str, Any]) -> str:
    body = {key: value for key, value in document.items() if key != "_id"}
    return json.dumps(encode_value(body))


def _decode_row(row: sqlite3.Row) -> dict[str, Any]:
    document = json.loads(row["data"])
    document["_id"] = ObjectId(row["id"])
    return document


class SqliteSession(StoreSession):
    """One isolated SQLite connection used as a store session."""

    def __init__(self, db_path: Path):
        super().__init__()
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get connection, enforcing context manager usage.

        Returns:
            SQLite connection

        Raises:
            RuntimeError: If the session is not being used as context manager
        """
        self._require_open()
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA busy_timeout = 5000")
        return self._conn

    def find(
        self,
        collection: str,
        filter: dict[str, Any],
        projection: dict[str, Any] | Sequence[str] | None = None,
        sort: Sequence[str] = (),
        limit: int = 0,
        skip: int = 0,
    ) -> list[dict[str, Any]]:
        where_clause, params = build_where_clause(filter)
        order_clause, order_params = build_order_clause(sort)

        query = f"SELECT id, data FROM document WHERE collection = ? AND ({where_clause})"
        params = [collection, *params]

        if order_clause:
            query += f" ORDER BY {order_clause}"
            params.extend(order_params)
        else:
            query += " ORDER BY rowid"

        if limit or skip:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit if limit else -1, skip])

        cursor = self._get_connection().execute(query, params)
        return [apply_projection(_decode_row(row), projection) for row in cursor.fetchall()]

    def insert(self, collection: str, document: dict[str, Any]) -> None:
        try:
            self._get_connection().execute(
                "INSERT INTO document (collection, id, data) VALUES (?, ?, ?)",
                (collection, str(document["_id"]), _encode_document(document)),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateError(
                "Duplicate key",
                {"collection": collection, "id": str(document["_id"]), "cause": str(e)},
            ) from e

    def upsert_id(self, collection: str, id: ObjectId, document: dict[str, Any]) -> None:
        try:
            self._get_connection().execute(
                """INSERT INTO document (collection, id, data) VALUES (?, ?, ?)
                   ON CONFLICT (collection, id) DO UPDATE SET data = excluded.data""",
                (collection, str(id), _encode_document(document)),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateError(
                "Duplicate key",
                {"collection": collection, "id": str(id), "cause": str(e)},
            ) from e

    def count(self, collection: str, filter: dict[str, Any]) -> int:
        where_clause, params = build_where_clause(filter)
        cursor = self._get_connection().execute(
            f"SELECT COUNT(*) FROM document WHERE collection = ? AND ({where_clause})",
            [collection, *params],
        )
        return cursor.fetchone()[0]

    def remove_all(self, collection: str, filter: dict[str, Any]) -> int:
        where_clause, params = build_where_clause(filter)
        cursor = self._get_connection().execute(
            f"DELETE FROM document WHERE collection = ? AND ({where_clause})",
            [collection, *params],
        )
        return cursor.rowcount

    def ensure_unique_index(self, collection: str, key: str) -> None:
        # Partial index predicates cannot be parameterized
        if not _NAME_PATTERN.match(collection):
            raise ValueError(f"Unsupported collection name for index: {collection!r}")
        path = json_path(key)
        index_name = f"uniq_{collection}_{key.replace('.', '_')}"
        self._get_connection().execute(
            f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} "
            f"ON document(collection, json_extract(data, '{path}')) "
            f"WHERE collection = '{collection}'"
        )

    def commit(self) -> None:
        if self._conn is not None:
            self._conn.commit()

    def rollback(self) -> None:
        if self._conn is not None:
            self._conn.rollback()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class SqliteStore(DocumentStore):
    """Document store kept in a single SQLite file."""

    def __init__(self, db_path: str | Path = "docmap.db"):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file

        Note:
            Call open() (done by docmap.connect) before first use so the
            schema exists.
        """
        self.db_path = Path(db_path)

    def __repr__(self) -> str:
        return f"SqliteStore({str(self.db_path)!r})"

    def open(self) -> None:
        """Create the database file and schema if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        schema_sql = get_sql_schema("store")
        with self.session() as session:
            session._get_connection().executescript(schema_sql)
        logger.debug(f"Opened SQLite document store at {self.db_path}")

    def _open_session(self) -> SqliteSession:
        return SqliteSession(self.db_path)
