"""docmap document stores.

A store is the external collaborator the ODM reads from and writes to.
Each backend implements DocumentStore / StoreSession from .base.
"""

from .base import CollectionBinding, DocumentStore, SessionCollection, StoreSession
from .sqlite import SqliteStore

__all__ = [
    "CollectionBinding",
    "DocumentStore",
    "SessionCollection",
    "StoreSession",
    "SqliteStore",
]
