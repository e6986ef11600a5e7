"""Core API of docmap: connections, models and the record lifecycle.

ARCHITECTURE:
- Connection owns the store, the document registry and the message catalog
- Model is the per-type handle returned by Connection.model(); it creates
  bound records and starts queries
- Records (Document subclasses) delegate save/delete/populate to the
  relation persister and population engine through their bound Model

    connection = docmap.connect(Settings(database_path="blog.db"))
    connection.register(User, "users")

    User = connection.model("User")
    user = User.new({"firstname": "Max"})
    user.save()

    same_user = User.find_id(user.id).one()

ERRORS:
Operations raise DocmapError subclasses for recoverable failures
(NotFoundError, DuplicateError, ValidationError, InvalidIdError) and
ConfigurationError subclasses for wiring mistakes (unregistered types,
malformed metadata, records used before binding).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from bson import ObjectId

from ..config import Settings
from ..exceptions import InvalidIdError
from ..store import CollectionBinding, DocumentStore, SqliteStore
from .document import Document
from .messages import MessageCatalog
from .query import Query
from .registry import DocumentRegistry, RegistryEntry
from .types import to_object_id

logger = logging.getLogger(__name__)


class Model:
    """Per-type entry point: creates bound records and starts queries."""

    def __init__(self, connection: Connection, entry: RegistryEntry):
        self.connection = connection
        self.entry = entry

    def __repr__(self) -> str:
        return f"Model({self.entry.document_type.__name__!r}, {self.collection.name!r})"

    @property
    def collection(self) -> CollectionBinding:
        """Native access to the model's collection."""
        return self.entry.collection

    @property
    def document_type(self) -> type:
        return self.entry.document_type

    def bind(self, document: Document) -> Document:
        """Attach a record to this model so it can be saved and populated.

        Raises:
            TypeError: If the record is not of the model's type
        """
        if not isinstance(document, self.entry.document_type):
            raise TypeError(
                f"Cannot bind {type(document).__name__} to model "
                f"{self.entry.document_type.__name__}"
            )
        document._bind(self)
        return document

    def new(self, content: str | bytes | Mapping[str, Any] | None = None) -> Document:
        """Create a bound zero-value record, optionally merging input.

        Args:
            content: Optional JSON text/bytes or mapping passed to
                Document.update()

        Returns:
            The new, unsaved record
        """
        document = self.bind(self.entry.new())
        if content is not None:
            document.update(content)
        return document

    def find(self, filter: dict[str, Any] | None = None) -> Query:
        """Start a query returning every matching record."""
        return Query(self, filter, multiple=True)

    def find_one(self, filter: dict[str, Any] | None = None) -> Query:
        """Start a query returning the first matching record."""
        return Query(self, filter, multiple=False)

    def find_id(self, id: ObjectId | str) -> Query:
        """Start a query for the record with the given id.

        Raises:
            InvalidIdError: If id is not an ObjectId or its hex text
        """
        object_id = to_object_id(id)
        if object_id is None:
            raise InvalidIdError(f"Invalid object id: {id!r}", {"value": str(id)})
        return Query(self, {"_id": object_id}, multiple=False)

    def count(self, filter: dict[str, Any] | None = None) -> int:
        return self.collection.count(filter)


class Connection:
    """A configured store with its registered record types."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings | None = None,
        messages: MessageCatalog | None = None,
    ):
        """Initialize connection.

        Args:
            store: Opened document store
            settings: Settings the connection was built from
            messages: Catalog used for validation messages (en-US if omitted)
        """
        self.store = store
        self.settings = settings
        self.messages = messages or MessageCatalog.for_locale()
        self.registry = DocumentRegistry(store)
        self._models: dict[str, Model] = {}

    def __repr__(self) -> str:
        return f"Connection({self.store!r})"

    def register(self, document_type: type, collection_name: str) -> Model:
        """Register a record type and return its Model.

        Registering the same type again logs a warning and changes nothing.

        Raises:
            SchemaError: If the type's field metadata is malformed
        """
        entry = self.registry.register(document_type, collection_name)
        return self._model_for(entry)

    def _model_for(self, entry: RegistryEntry) -> Model:
        model = self._models.get(entry.type_name)
        if model is None:
            model = Model(self, entry)
            self._models[entry.type_name] = model
        return model

    def model(self, type_name: str) -> Model:
        """Return the Model of a registered type (case-insensitive).

        Raises:
            RegistrationError: If the type was never registered
        """
        return self._model_for(self.registry.resolve(type_name))

    def document(self, type_name: str) -> Document:
        """Create a bound zero-value record of a registered type."""
        return self.model(type_name).new()

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def build_store(settings: Settings) -> DocumentStore:
    """Create the (unopened) store selected by settings.backend."""
    if settings.backend == "mongodb":
        from ..store.mongo import MongoStore

        return MongoStore(
            settings.database_hosts,
            settings.database_name,
            settings.database_user,
            settings.database_password,
        )
    return SqliteStore(settings.database_path)


def connect(
    settings: Settings | None = None,
    messages: MessageCatalog | None = None,
    store: DocumentStore | None = None,
) -> Connection:
    """Open a store and return a connection to it.

    Args:
        settings: Settings (resolved from env/TOML/defaults if omitted)
        messages: Catalog overriding the one built from settings
        store: Pre-built store overriding settings.backend

    Returns:
        Connection ready for register()

    Raises:
        ValueError: If the configured locale is unknown
        pymongo.errors.PyMongoError: If MongoDB cannot be reached
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("docmap").setLevel(settings.log_level.upper())

    if messages is None:
        messages = MessageCatalog.for_locale(settings.locale, settings.messages)

    if store is None:
        store = build_store(settings)
    store.open()
    logger.debug(f"Connected to {store!r}")

    return Connection(store, settings, messages)


__all__ = [
    "Connection",
    "Document",
    "Model",
    "Query",
    "build_store",
    "connect",
]
