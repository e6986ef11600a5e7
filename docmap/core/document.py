"""Document: the base type of every record managed by docmap.

Records are dataclasses deriving from Document:

    @dataclass
    class User(Document):
        first_name: str = field(default="", required=True, min_len=2, name="firstname")
        email: str = field(default="", validation="email")
        messages: list[Message | ObjectId] | None = relation("Message", many=True, autosave=True)

Every record carries id, created_at, updated_at and deleted, all managed by
save(). Persistence methods need the record to be bound to its Model first
(Model.new() or Model.bind()); calling them on an unbound record raises
UnboundDocumentError.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from bson import ObjectId

from ..exceptions import DocmapError, UnboundDocumentError
from . import codec, validation
from .descriptors import get_descriptors
from .messages import MessageCatalog, default_catalog

if TYPE_CHECKING:
    from . import Model

# Stored and attribute spellings of the system-managed fields
RESERVED_KEYS = {"id", "_id", "createdAt", "updatedAt", "created_at", "updated_at", "deleted"}


@dataclass(kw_only=True)
class Document:
    """Base record with identity, timestamps and the soft-delete flag."""
    id: ObjectId | None = dataclasses.field(default=None, metadata={"name": "_id"})
    created_at: datetime | None = dataclasses.field(default=None, metadata={"name": "createdAt"})
    updated_at: datetime | None = dataclasses.field(default=None, metadata={"name": "updatedAt"})
    deleted: bool = False
    _model: Any = dataclasses.field(
        default=None, init=False, repr=False, compare=False, metadata={"transient": True}
    )

    # ==========================================================================
    # BINDING
    # ==========================================================================

    def _bind(self, model: Model) -> None:
        self._model = model

    @property
    def model(self) -> Model:
        """The Model this record is bound to.

        Raises:
            UnboundDocumentError: If the record was never bound
        """
        return self._require_model("access its model")

    @property
    def is_bound(self) -> bool:
        return self._model is not None

    def _require_model(self, action: str) -> Model:
        if self._model is None:
            raise UnboundDocumentError(
                f"You have to initialize your {type(self).__name__} with Model.new() "
                f"or Model.bind() before you can {action}"
            )
        return self._model

    def message_catalog(self) -> MessageCatalog:
        """Message catalog of the bound connection, or the default en-US catalog."""
        if self._model is None:
            return default_catalog()
        return self._model.connection.messages

    # ==========================================================================
    # VALIDATION
    # ==========================================================================

    def validate(self) -> tuple[bool, list[validation.ValidationIssue]]:
        """Validate the record.

        Override to add custom rules; call default_validate() to keep the
        metadata-driven ones.

        Returns:
            Tuple of (is_valid, issues)
        """
        return self.default_validate()

    def default_validate(self) -> tuple[bool, list[validation.ValidationIssue]]:
        """Run the metadata-driven rules (required, lengths, patterns, ids)."""
        return validation.validate(self, self.message_catalog())

    # ==========================================================================
    # PARTIAL UPDATE
    # ==========================================================================

    def update(self, content: str | bytes | Mapping[str, Any]) -> dict[str, Any]:
        """Merge external input into the record.

        The content is either wrapped under the lower-cased type name
        ({"user": {...}}) or a bare field mapping. System-managed fields
        are ignored, as are keys matching no field. Keys match stored or
        attribute names case-insensitively. The caller's mapping is not
        modified.

        Args:
            content: JSON text/bytes or a mapping

        Returns:
            The decoded input mapping

        Raises:
            DocmapError: If JSON content is invalid or not an object, or a
                value does not fit its field type (the record is left unchanged)
            TypeError: If content is of another type
        """
        if isinstance(content, (str, bytes, bytearray)):
            try:
                buffer = json.loads(content)
            except json.JSONDecodeError as e:
                raise DocmapError(f"Content is not valid JSON: {e}", {"content": str(content)[:200]}) from e
            if not isinstance(buffer, dict):
                raise DocmapError("Content must be a JSON object")
        elif isinstance(content, Mapping):
            buffer = dict(content)
        else:
            raise TypeError(f"Cannot update {type(self).__name__} from {type(content).__name__}")

        wrapped = buffer.get(type(self).__name__.lower())
        values = wrapped if isinstance(wrapped, Mapping) else buffer

        lookup = {}
        for descriptor in get_descriptors(type(self)):
            lookup[descriptor.attr.lower()] = descriptor
            lookup[descriptor.name.lower()] = descriptor

        decoded = {}
        for key, value in values.items():
            if key in RESERVED_KEYS:
                continue
            descriptor = lookup.get(str(key).lower())
            if descriptor is None or descriptor.attr in RESERVED_KEYS:
                continue
            decoded[descriptor.attr] = codec.decode_field(descriptor, value)

        for attr, value in decoded.items():
            setattr(self, attr, value)

        return buffer

    # ==========================================================================
    # PERSISTENCE
    # ==========================================================================

    def save(self) -> None:
        """Validate and persist the record, normalizing its relations.

        Populated relation values are written as object ids and restored on
        the record afterwards. The first save assigns id and both
        timestamps; later saves only refresh updated_at.

        Raises:
            ValidationError: If validation fails (nothing is written)
            InvalidIdError: If a relation holds an invalid id string
            DuplicateError: If a unique index rejects the write
            UnboundDocumentError: If the record is not bound to a Model
        """
        from .relation import save_document

        save_document(self)

    def delete(self) -> None:
        """Soft delete: set the deleted flag and save.

        Raises:
            InvalidIdError: If the record was never saved (nothing is written)
        """
        from .relation import delete_document

        delete_document(self)

    def populate(self, *fields: str) -> None:
        """Replace the references of the named relation fields with records.

        Only one level is resolved. See docmap.core.population.

        Raises:
            NotFoundError: If a one-to-one reference has no matching record
            PopulationError: If a name is unknown or not a relation
        """
        from .population import populate

        populate(self, fields)
