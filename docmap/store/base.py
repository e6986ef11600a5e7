"""Store interface shared by every docmap backend.

SESSION LIFECYCLE:
- DocumentStore.session() yields an isolated StoreSession and always closes it
- StoreSession.__exit__ commits on success, rolls back on exception, always closes
- Operations call _require_open() which raises RuntimeError outside of 'with'

COLLECTION BINDINGS:
A CollectionBinding is the long-lived handle a Model keeps for its collection.
Each convenience call on the binding (find, count, ...) runs in a short
session of its own (autocommit semantics). Callers that need several
operations to share one isolated session use binding.session().

DOCUMENTS:
Documents are plain dicts. The identifier lives under '_id' and is a
bson.ObjectId. Values may be ObjectId, timezone-aware datetime, str, numbers,
bool, None, lists and nested dicts; each backend maps them to its wire format.

FILTERS:
Filters are Mongo-style mappings: {"field": value}, {"field": {"$in": [...]}},
{"$or": [...]}. Backends that do not speak this language natively translate
the supported subset (see docmap.store.filters).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from bson import ObjectId


class StoreSession(ABC):
    """Isolated view of a store for the duration of one unit of work."""

    def __init__(self):
        self._in_context = False

    def _require_open(self) -> None:
        """Enforce context manager usage.

        Raises:
            RuntimeError: If the session is not being used as context manager
        """
        if not self._in_context:
            raise RuntimeError(
                "Store sessions must be used as context manager. "
                "Use: with store.session() as session: ..."
            )

    def __enter__(self) -> StoreSession:
        self._in_context = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._in_context = False
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.close()

    def collection(self, name: str) -> SessionCollection:
        """Return a view of one collection bound to this session."""
        return SessionCollection(self, name)

    @abstractmethod
    def find(
        self,
        collection: str,
        filter: dict[str, Any],
        projection: dict[str, Any] | Sequence[str] | None = None,
        sort: Sequence[str] = (),
        limit: int = 0,
        skip: int = 0,
    ) -> list[dict[str, Any]]:
        """Return every document of a collection matching the filter.

        Args:
            collection: Collection name
            filter: Mongo-style filter mapping
            projection: Field names to include, or a {field: 0|1} mapping
            sort: Keys to sort by; a leading '-' sorts descending
            limit: Maximum number of documents (0 means no limit)
            skip: Number of matching documents to skip

        Returns:
            List of documents (possibly empty)
        """

    def find_one(
        self,
        collection: str,
        filter: dict[str, Any],
        projection: dict[str, Any] | Sequence[str] | None = None,
        sort: Sequence[str] = (),
        skip: int = 0,
    ) -> dict[str, Any] | None:
        """Return the first matching document, or None."""
        documents = self.find(collection, filter, projection, sort, limit=1, skip=skip)
        return documents[0] if documents else None

    @abstractmethod
    def insert(self, collection: str, document: dict[str, Any]) -> None:
        """Insert a document carrying an '_id'.

        Raises:
            DuplicateError: If the id or a unique index value already exists
        """

    @abstractmethod
    def upsert_id(self, collection: str, id: ObjectId, document: dict[str, Any]) -> None:
        """Replace the document with the given id, inserting it when absent.

        Raises:
            DuplicateError: If a unique index value already exists
        """

    @abstractmethod
    def count(self, collection: str, filter: dict[str, Any]) -> int:
        """Count documents matching the filter."""

    @abstractmethod
    def remove_all(self, collection: str, filter: dict[str, Any]) -> int:
        """Physically delete matching documents, returning how many were removed."""

    @abstractmethod
    def ensure_unique_index(self, collection: str, key: str) -> None:
        """Create a unique index on a document key if it does not exist."""

    def commit(self) -> None:
        """Make the session's writes durable (no-op for autocommit backends)."""

    def rollback(self) -> None:
        """Discard uncommitted writes (no-op for autocommit backends)."""

    @abstractmethod
    def close(self) -> None:
        """Release the session's resources."""


class SessionCollection:
    """One named collection seen through a StoreSession."""

    def __init__(self, session: StoreSession, name: str):
        self.session = session
        self.name = name

    def find(self, filter: dict[str, Any] | None = None, projection=None,
             sort: Sequence[str] = (), limit: int = 0, skip: int = 0) -> list[dict[str, Any]]:
        return self.session.find(self.name, filter or {}, projection, sort, limit, skip)

    def find_one(self, filter: dict[str, Any] | None = None, projection=None,
                 sort: Sequence[str] = (), skip: int = 0) -> dict[str, Any] | None:
        return self.session.find_one(self.name, filter or {}, projection, sort, skip)

    def insert(self, document: dict[str, Any]) -> None:
        self.session.insert(self.name, document)

    def upsert_id(self, id: ObjectId, document: dict[str, Any]) -> None:
        self.session.upsert_id(self.name, id, document)

    def count(self, filter: dict[str, Any] | None = None) -> int:
        return self.session.count(self.name, filter or {})

    def remove_all(self, filter: dict[str, Any] | None = None) -> int:
        return self.session.remove_all(self.name, filter or {})

    def ensure_unique_index(self, key: str) -> None:
        self.session.ensure_unique_index(self.name, key)


class CollectionBinding:
    """Long-lived handle for one collection of a store.

    Every method except session() opens and closes its own store session.
    """

    def __init__(self, store: DocumentStore, name: str):
        self.store = store
        self.name = name

    def __repr__(self) -> str:
        return f"CollectionBinding({self.name!r})"

    @contextmanager
    def session(self) -> Iterator[SessionCollection]:
        """Open an isolated session scoped to this collection."""
        with self.store.session() as session:
            yield session.collection(self.name)

    def find(self, filter: dict[str, Any] | None = None, projection=None,
             sort: Sequence[str] = (), limit: int = 0, skip: int = 0) -> list[dict[str, Any]]:
        with self.session() as collection:
            return collection.find(filter, projection, sort, limit, skip)

    def find_one(self, filter: dict[str, Any] | None = None, projection=None,
                 sort: Sequence[str] = (), skip: int = 0) -> dict[str, Any] | None:
        with self.session() as collection:
            return collection.find_one(filter, projection, sort, skip)

    def count(self, filter: dict[str, Any] | None = None) -> int:
        with self.session() as collection:
            return collection.count(filter)

    def remove_all(self, filter: dict[str, Any] | None = None) -> int:
        with self.session() as collection:
            return collection.remove_all(filter)

    def ensure_unique_index(self, key: str) -> None:
        with self.session() as collection:
            collection.ensure_unique_index(key)


class DocumentStore(ABC):
    """A document store reachable through isolated sessions."""

    def open(self) -> None:
        """Prepare the store for use (connect, create schema)."""

    def close(self) -> None:
        """Release store-wide resources."""

    @abstractmethod
    def _open_session(self) -> StoreSession:
        """Create a new, not yet entered, session."""

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        """Yield an isolated session, released on every exit path."""
        with self._open_session() as session:
            yield session

    def collection(self, name: str) -> CollectionBinding:
        """Return the long-lived binding for a collection."""
        return CollectionBinding(self, name)
