"""Query executor: deferred reads against one model's collection.

A Query is built by Model.find(), Model.find_one() or Model.find_id() and
configured with chainable builders. Nothing touches the store until
exec(), all(), one() or count() is called.

    posts = Post.find({"deleted": False}).sort("-createdAt").limit(10).populate("author").all()

Multiplicity is fixed at construction: find() returns many records,
find_one()/find_id() return a single one. A single query without a match
raises NotFoundError; a many query without a match returns an empty list.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any, Sequence

from ..exceptions import MultiplicityError, NotFoundError
from . import codec
from .document import Document
from .population import populate

if TYPE_CHECKING:
    from . import Model

logger = logging.getLogger(__name__)


def _append_unique(items: list[str], values: Sequence[str]) -> None:
    for value in values:
        if value not in items:
            items.append(value)


class Query:
    """Deferred, chainable read of one model's collection."""

    def __init__(self, model: Model, filter: dict[str, Any] | None = None, multiple: bool = True):
        self.model = model
        self.filter = copy.deepcopy(filter) if filter else {}
        self.multiple = multiple
        self.projection: dict[str, Any] | Sequence[str] | None = None
        self.sort_keys: list[str] = []
        self.limit_count = 0
        self.skip_count = 0
        self.populate_fields: list[str] = []

    def __repr__(self) -> str:
        return (
            f"Query({self.model.entry.type_name!r}, {self.filter!r}, "
            f"multiple={self.multiple})"
        )

    # ==========================================================================
    # BUILDERS
    # ==========================================================================

    def select(self, projection: dict[str, Any] | Sequence[str]) -> Query:
        """Restrict the stored fields read ({field: 1} mapping or names)."""
        self.projection = projection
        return self

    def sort(self, *keys: str) -> Query:
        """Add sort keys; a leading '-' sorts descending."""
        _append_unique(self.sort_keys, keys)
        return self

    def limit(self, limit: int) -> Query:
        self.limit_count = limit
        return self

    def skip(self, skip: int) -> Query:
        self.skip_count = skip
        return self

    def populate(self, *fields: str) -> Query:
        """Populate the named relation fields of every result."""
        _append_unique(self.populate_fields, fields)
        return self

    # ==========================================================================
    # EXECUTION
    # ==========================================================================

    def count(self) -> int:
        """Count records matching the filter (builders are ignored)."""
        return self.model.collection.count(self.filter)

    def _read(self) -> list[dict[str, Any]]:
        limit = self.limit_count if self.multiple else 1
        return self.model.collection.find(
            self.filter,
            self.projection,
            self.sort_keys,
            limit,
            self.skip_count,
        )

    def _load(self, record: Document, stored: dict[str, Any]) -> Document:
        codec.apply_document(record, stored)
        codec.normalize_references(record)
        self.model.bind(record)
        if self.populate_fields:
            populate(record, self.populate_fields)
        return record

    def exec(self, target: list | Document) -> list | Document:
        """Run the query and bind the results into target.

        Args:
            target: A list (many query) which is extended with the records,
                or a record of the model's type (single query) which is
                filled in place

        Returns:
            target

        Raises:
            MultiplicityError: If target does not match the multiplicity
            NotFoundError: If a single query has no match, or a populated
                one-to-one reference is missing
        """
        if isinstance(target, list):
            if not self.multiple:
                raise MultiplicityError("Execution of a single-record query expected a record, got a list")
            documents = self._read()
            logger.debug(f"{self!r} matched {len(documents)} record(s)")
            for stored in documents:
                target.append(self._load(self.model.new(), stored))
            return target

        if isinstance(target, Document):
            if self.multiple:
                raise MultiplicityError("Execution of a multi-record query expected a list")
            documents = self._read()
            if not documents:
                raise NotFoundError(
                    f"No {self.model.entry.document_type.__name__} found",
                    {"collection": self.model.collection.name, "filter": repr(self.filter)},
                )
            return self._load(target, documents[0])

        raise MultiplicityError(f"Cannot bind query results into a {type(target).__name__}")

    def all(self) -> list:
        """Run a many query and return the records (possibly none)."""
        return self.exec([])

    def one(self) -> Document:
        """Run a single query and return the record.

        Raises:
            NotFoundError: If there is no match
        """
        return self.exec(self.model.new())
