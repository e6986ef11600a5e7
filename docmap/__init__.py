"""
docmap

Object-document mapping for dataclass records on document stores.
"""

__version__ = "0.1.0"

# Core exports
from docmap.core import Connection, Model, Query, connect
from docmap.core.document import Document
from docmap.core.descriptors import field, relation

# Configuration exports
from docmap.config import Settings

# Type exports
from docmap.core.types import Cardinality, is_object_id_hex, to_object_id
from bson import ObjectId

# Exception exports
from docmap import exceptions
from docmap.exceptions import (
    DocmapError,
    DuplicateError,
    InvalidIdError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    # Core
    "Connection",
    "Model",
    "Query",
    "connect",
    "Document",
    "field",
    "relation",
    # Configuration
    "Settings",
    # Types
    "Cardinality",
    "ObjectId",
    "is_object_id_hex",
    "to_object_id",
    # Exceptions module (access as docmap.exceptions.SchemaError, etc.)
    "exceptions",
    "DocmapError",
    "DuplicateError",
    "InvalidIdError",
    "NotFoundError",
    "ValidationError",
]
