"""Document registry: maps type names to record types and collections.

Each Connection owns one registry. Types are registered at startup and the
registry is only read afterwards. Lookups are case-insensitive on the type
name ('User', 'user' and 'USER' resolve to the same entry).

Descriptors are extracted at registration, so malformed field metadata
raises SchemaError when the application starts rather than on first save.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..exceptions import RegistrationError
from ..store import CollectionBinding, DocumentStore
from .descriptors import get_descriptors
from .document import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """A registered record type."""
    type_name: str  # Lower-cased type name
    document_type: type
    collection: CollectionBinding

    def new(self) -> Document:
        """Create a zero-value, unbound record of the registered type."""
        return self.document_type()


class DocumentRegistry:
    """Lookup of registered record types by name."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self._entries: dict[str, RegistryEntry] = {}

    def register(self, document_type: type, collection_name: str) -> RegistryEntry:
        """Register a record type under its class name.

        Args:
            document_type: Dataclass deriving from Document
            collection_name: Collection holding records of this type

        Returns:
            The registry entry (the existing one if already registered)

        Raises:
            TypeError: If document_type does not derive from Document
            SchemaError: If the type's field metadata is malformed
        """
        if not (isinstance(document_type, type) and issubclass(document_type, Document)):
            raise TypeError(f"{document_type!r} must be a subclass of Document")

        type_name = document_type.__name__.lower()
        existing = self._entries.get(type_name)
        if existing is not None:
            logger.warning(f"Tried to register type '{document_type.__name__}' twice")
            return existing

        get_descriptors(document_type)

        entry = RegistryEntry(
            type_name=type_name,
            document_type=document_type,
            collection=self.store.collection(collection_name),
        )
        self._entries[type_name] = entry
        logger.debug(f"Registered type '{document_type.__name__}' for collection '{collection_name}'")
        return entry

    def resolve(self, type_name: str) -> RegistryEntry:
        """Find the entry of a type name (case-insensitive).

        Raises:
            RegistrationError: If the type was never registered
        """
        entry = self._entries.get(type_name.lower())
        if entry is None:
            raise RegistrationError(f"Type '{type_name}' is not registered")
        return entry

    def __contains__(self, type_name: str) -> bool:
        return type_name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)
