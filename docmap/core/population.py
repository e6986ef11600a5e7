"""Population engine: replace stored references with the related records.

One-to-one: the referenced record is read by id. If it does not exist,
NotFoundError propagates and the field keeps its reference.

One-to-many: all referenced records are read with a single '$in' query.
Results follow the order in which the ids first appear in the field;
unknown ids are dropped. No match at all yields an empty list.

Only the first relation level is resolved, and nothing is cached: every
call reads the store again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from bson import ObjectId

from ..exceptions import NotFoundError, PopulationError
from .descriptors import lookup_descriptor
from .document import Document
from .types import Cardinality, to_object_id

if TYPE_CHECKING:
    from . import Model

logger = logging.getLogger(__name__)


def _reference_id(element: Any) -> ObjectId | None:
    if isinstance(element, Document):
        return element.id
    return to_object_id(element)


def _populate_one(target: Model, value: Any) -> Document:
    object_id = _reference_id(value)
    if object_id is None:
        raise NotFoundError(f"No {target.entry.document_type.__name__} found", {"id": str(value)})
    return target.find_id(object_id).one()


def _populate_many(target: Model, values: Iterable[Any]) -> list[Document]:
    ids = []
    for element in values:
        object_id = _reference_id(element)
        if object_id is not None and object_id not in ids:
            ids.append(object_id)
    if not ids:
        return []

    try:
        found = target.find({"_id": {"$in": ids}}).all()
    except NotFoundError:
        return []

    by_id = {record.id: record for record in found}
    return [by_id[object_id] for object_id in ids if object_id in by_id]


def populate(document: Document, field_names: Iterable[str]) -> None:
    """Populate the named relation fields of a bound record.

    Args:
        document: Record whose relation fields are resolved
        field_names: Attribute or stored names of relation fields

    Raises:
        NotFoundError: If a one-to-one reference has no matching record
        PopulationError: If a name is unknown or not a relation field
        UnboundDocumentError: If the record is not bound to a Model
    """
    model = document._require_model("populate it")
    type_name = type(document).__name__

    for field_name in field_names:
        descriptor = lookup_descriptor(type(document), field_name)
        if descriptor is None:
            raise PopulationError(f"Can not populate field '{field_name}' for type '{type_name}'. Field not found.")
        if not descriptor.is_relation:
            raise PopulationError(f"Field '{field_name}' of type '{type_name}' is not a relation")

        value = getattr(document, descriptor.attr)
        if value is None or (isinstance(value, (list, tuple)) and len(value) == 0):
            continue

        target = model.connection.model(descriptor.model)
        logger.debug(f"Populating {type_name}.{descriptor.attr} from {target.collection.name}")

        if descriptor.cardinality is Cardinality.MANY:
            if not isinstance(value, (list, tuple)):
                raise PopulationError(
                    f"Field '{field_name}' of type '{type_name}' is a 'many' relation but holds "
                    f"a {type(value).__name__}"
                )
            setattr(document, descriptor.attr, _populate_many(target, value))
        else:
            if isinstance(value, (list, tuple)):
                raise PopulationError(
                    f"Field '{field_name}' of type '{type_name}' is a 'one' relation but holds a list"
                )
            setattr(document, descriptor.attr, _populate_one(target, value))
