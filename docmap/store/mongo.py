"""MongoDB-backed document store built on pymongo.

Filters, projections and sort keys are passed through to the server
unchanged, so the full native query language is available.

SESSION LIFECYCLE:
- The MongoClient is shared by every session (it owns the connection pool)
- Each StoreSession starts its own causally consistent client session so
  writes made through it are observed by its own later reads
- commit()/rollback() are no-ops: there are no multi-document transactions
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError

from ..exceptions import DuplicateError
from .base import DocumentStore, StoreSession

logger = logging.getLogger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 3000


def build_sort_spec(sort: Sequence[str]) -> list[tuple[str, int]]:
    """Convert '-key' style sort keys into a pymongo sort specification."""
    spec = []
    for sort_key in sort:
        direction = DESCENDING if sort_key.startswith("-") else ASCENDING
        spec.append((sort_key.lstrip("+-"), direction))
    return spec


class MongoSession(StoreSession):
    """A pymongo client session scoped to one unit of work."""

    def __init__(self, client: MongoClient, database_name: str):
        super().__init__()
        self._client = client
        self._database = client[database_name]
        self._session = None

    def _get_session(self):
        self._require_open()
        if self._session is None:
            self._session = self._client.start_session(causal_consistency=True)
        return self._session

    def find(
        self,
        collection: str,
        filter: dict[str, Any],
        projection: dict[str, Any] | Sequence[str] | None = None,
        sort: Sequence[str] = (),
        limit: int = 0,
        skip: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self._database[collection].find(
            filter,
            projection=projection or None,
            session=self._get_session(),
        )
        if sort:
            cursor = cursor.sort(build_sort_spec(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def insert(self, collection: str, document: dict[str, Any]) -> None:
        try:
            self._database[collection].insert_one(document, session=self._get_session())
        except DuplicateKeyError as e:
            raise DuplicateError(
                "Duplicate key",
                {"collection": collection, "id": str(document.get("_id")), "cause": str(e)},
            ) from e

    def upsert_id(self, collection: str, id: ObjectId, document: dict[str, Any]) -> None:
        try:
            self._database[collection].replace_one(
                {"_id": id}, document, upsert=True, session=self._get_session()
            )
        except DuplicateKeyError as e:
            raise DuplicateError(
                "Duplicate key",
                {"collection": collection, "id": str(id), "cause": str(e)},
            ) from e

    def count(self, collection: str, filter: dict[str, Any]) -> int:
        return self._database[collection].count_documents(filter, session=self._get_session())

    def remove_all(self, collection: str, filter: dict[str, Any]) -> int:
        result = self._database[collection].delete_many(filter, session=self._get_session())
        return result.deleted_count

    def ensure_unique_index(self, collection: str, key: str) -> None:
        self._database[collection].create_index(
            [(key, ASCENDING)], unique=True, session=self._get_session()
        )

    def close(self) -> None:
        if self._session is not None:
            self._session.end_session()
            self._session = None


class MongoStore(DocumentStore):
    """Document store in a MongoDB database."""

    def __init__(
        self,
        hosts: list[str],
        database_name: str,
        user: str | None = None,
        password: str | None = None,
        client: MongoClient | None = None,
    ):
        """Initialize the store.

        Args:
            hosts: Server addresses ("host" or "host:port")
            database_name: Database holding the collections
            user: Optional user name
            password: Optional password
            client: Pre-built client (skips client creation in open())
        """
        self.hosts = list(hosts)
        self.database_name = database_name
        self.user = user
        self.password = password
        self._client = client

    def __repr__(self) -> str:
        return f"MongoStore({self.hosts!r}, {self.database_name!r})"

    def open(self) -> None:
        """Create the client and check that a server is reachable."""
        if self._client is None:
            self._client = MongoClient(
                self.hosts,
                username=self.user,
                password=self.password,
                serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
                tz_aware=True,
            )
        self._client.admin.command("ping")
        logger.debug(f"Connected to MongoDB {self.hosts} database '{self.database_name}'")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _open_session(self) -> MongoSession:
        if self._client is None:
            raise RuntimeError("MongoStore is not open. Call open() or docmap.connect() first.")
        return MongoSession(self._client, self.database_name)
