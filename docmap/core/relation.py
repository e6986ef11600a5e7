"""Relation persister: save-time normalization of relation fields.

SAVE SEQUENCE:
1. Validate the record (ValidationError, nothing is written)
2. Open an isolated session on the record's collection
3. Replace every relation value with its reference form (ObjectId or
   list[ObjectId]), cascading saves of autosave relations first
4. Insert (new id, both timestamps) or upsert by id (updated timestamp only)
5. Restore the original relation values on the record, whatever happened

Step 3 is staged through StagedFields, so a caller holding populated
relations keeps them after save() while the store only holds ids. The
single exception is an empty 'many' relation, which is permanently set to
an empty list.

Cascaded saves are independent writes. If the owner's write fails after
its children were saved, the children stay persisted.
"""

from __future__ import annotations

import logging
from typing import Any

from bson import ObjectId

from ..exceptions import InvalidIdError, RelationShapeError, ValidationError
from ..host import now_utc
from . import codec
from .descriptors import FieldDescriptor, relation_descriptors
from .document import Document
from .types import Cardinality, to_object_id

logger = logging.getLogger(__name__)


class StagedFields:
    """Temporary replacements of record attributes, undone on exit.

    Usage:
        with StagedFields(document) as staged:
            staged.replace("author", author.id)
            ...  # write document
        # document.author is the original value again
    """

    def __init__(self, document: Any):
        self.document = document
        self._originals: dict[str, Any] = {}

    def replace(self, attr: str, value: Any) -> None:
        """Swap an attribute value, remembering the first original."""
        if attr not in self._originals:
            self._originals[attr] = getattr(self.document, attr)
        setattr(self.document, attr, value)

    def restore(self) -> None:
        for attr, value in self._originals.items():
            setattr(self.document, attr, value)
        self._originals.clear()

    def __len__(self) -> int:
        return len(self._originals)

    def __enter__(self) -> StagedFields:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.restore()
        return False


def resolve_reference(owner: Document, descriptor: FieldDescriptor, element: Any) -> ObjectId:
    """Turn one relation element into the ObjectId that is stored.

    Args:
        owner: Record holding the relation
        descriptor: Relation field descriptor
        element: Related record, ObjectId or hex text

    Returns:
        ObjectId of the related record

    Raises:
        InvalidIdError: If element is text but not a valid object id
        RelationShapeError: If element is a record without id, or of
            another shape entirely
    """
    where = f"{type(owner).__name__}.{descriptor.attr}"

    if isinstance(element, Document):
        if descriptor.autosave:
            if not element.is_bound:
                owner.model.connection.model(descriptor.model).bind(element)
            logger.debug(f"Cascading save of {type(element).__name__} from {where}")
            element.save()
        if element.id is None:
            raise RelationShapeError(
                f"Related {type(element).__name__} in {where} was never saved; "
                f"save it first or declare the relation with autosave"
            )
        return element.id

    if isinstance(element, ObjectId):
        return element

    if isinstance(element, str):
        object_id = to_object_id(element)
        if object_id is None:
            raise InvalidIdError(
                f"Invalid object id in {where}",
                {"field": descriptor.name, "value": element},
            )
        return object_id

    raise RelationShapeError(
        f"{where} holds a {type(element).__name__}; expected a record, an ObjectId or its hex text"
    )


def _stage_relations(document: Document, staged: StagedFields) -> None:
    for descriptor in relation_descriptors(type(document)):
        value = getattr(document, descriptor.attr)

        if descriptor.cardinality is Cardinality.MANY:
            if value is None or (isinstance(value, (list, tuple)) and len(value) == 0):
                setattr(document, descriptor.attr, [])
                continue
            if not isinstance(value, (list, tuple)):
                raise RelationShapeError(
                    f"{type(document).__name__}.{descriptor.attr} is a 'many' relation "
                    f"and must hold a list, got {type(value).__name__}"
                )
            staged.replace(
                descriptor.attr,
                [resolve_reference(document, descriptor, element) for element in value],
            )
        elif value is not None:
            staged.replace(descriptor.attr, resolve_reference(document, descriptor, value))


def save_document(document: Document) -> None:
    """Validate, normalize relations and write one record.

    Raises:
        ValidationError: If document.validate() reports issues
        InvalidIdError: If a relation holds invalid id text
        RelationShapeError: If a relation holds a value of the wrong shape
        DuplicateError: If the store rejects the write on a unique index
        UnboundDocumentError: If the record is not bound to a Model
    """
    model = document._require_model("save it")

    valid, issues = document.validate()
    if not valid:
        raise ValidationError(f"{type(document).__name__} failed validation", issues)

    previous = (document.id, document.created_at, document.updated_at)
    is_new = document.id is None

    try:
        with model.collection.session() as collection, StagedFields(document) as staged:
            _stage_relations(document, staged)

            now = now_utc()
            if is_new:
                document.id = ObjectId()
                document.created_at = now
            elif document.created_at is None:
                document.created_at = now
            document.updated_at = now

            stored = codec.to_document(document)
            if is_new:
                collection.insert(stored)
            else:
                collection.upsert_id(document.id, stored)
    except Exception:
        document.id, document.created_at, document.updated_at = previous
        raise

    logger.debug(
        f"{'Inserted' if is_new else 'Updated'} {type(document).__name__} {document.id} "
        f"in {model.collection.name}"
    )


def delete_document(document: Document) -> None:
    """Soft delete a record: set deleted and save.

    Raises:
        InvalidIdError: If the record has no id (nothing is written)
    """
    if document.id is None:
        raise InvalidIdError(
            f"Cannot delete a {type(document).__name__} that was never saved",
            {"type": type(document).__name__},
        )

    previous = document.deleted
    document.deleted = True
    try:
        save_document(document)
    except Exception:
        document.deleted = previous
        raise
