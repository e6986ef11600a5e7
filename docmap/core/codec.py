"""Conversion between records and stored document mappings.

ENCODE (record -> mapping):
- Keys are the descriptors' stored names; the id goes under '_id' and is
  omitted while unset
- Embedded dataclasses become nested mappings, lists are encoded per element
- ObjectId and datetime values are kept as-is; each store maps them to its
  wire format

DECODE (mapping -> record):
- Values are coerced to the field annotation where the wire format lost the
  type: ISO text to datetime, hex text to ObjectId, mappings to embedded
  dataclasses
- Relation fields are assigned raw; normalize_references() turns them into
  ObjectId / list[ObjectId] afterwards
- Keys missing from the mapping leave the field untouched (projections)
"""

from __future__ import annotations

import dataclasses
import typing
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from bson import ObjectId

from ..exceptions import DocmapError
from .descriptors import FieldDescriptor, get_descriptors, strip_optional
from .types import to_object_id

if TYPE_CHECKING:
    from .document import Document

# Plain annotations a value must match after coercion
SCALAR_TYPES = (str, int, float, bool, datetime)


def encode_value(value: Any) -> Any:
    """Encode one field value for storage."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            dc_field.name: encode_value(getattr(value, dc_field.name))
            for dc_field in dataclasses.fields(value)
            if not dc_field.metadata.get("transient")
        }
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): encode_value(item) for key, item in value.items()}
    if isinstance(value, Enum):
        return value.value
    return value


def to_document(document: Document) -> dict[str, Any]:
    """Encode a record into the mapping that is written to the store."""
    stored: dict[str, Any] = {}
    for descriptor in get_descriptors(type(document)):
        value = getattr(document, descriptor.attr)
        if descriptor.name == "_id" and value is None:
            continue
        stored[descriptor.name] = encode_value(value)
    return stored


def decode_value(annotation: Any, value: Any) -> Any:
    """Coerce a stored value to a field annotation where the types differ.

    Args:
        annotation: Field annotation with Optional stripped
        value: Value as read from the store

    Returns:
        Coerced value; values of other annotations that do not need or
        allow coercion are returned unchanged

    Raises:
        DocmapError: If the value cannot be coerced to a scalar annotation
            (str, int, float, bool, datetime)
    """
    if value is None:
        return None

    annotation = strip_optional(annotation)
    origin = typing.get_origin(annotation)

    if annotation is datetime and isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise DocmapError(f"Expected an ISO 8601 datetime, got {value!r}") from e
    if annotation in SCALAR_TYPES:
        return _check_scalar(annotation, value)
    if annotation is ObjectId and isinstance(value, str):
        return to_object_id(value) or value
    if isinstance(annotation, type) and issubclass(annotation, Enum) and not isinstance(value, annotation):
        return annotation(value)
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation) and isinstance(value, dict):
        return build_embedded(annotation, value)
    if origin in (list, tuple) and isinstance(value, list):
        args = typing.get_args(annotation)
        item_annotation = args[0] if args else Any
        items = [decode_value(item_annotation, item) for item in value]
        return items if origin is list else tuple(items)
    return value


def _check_scalar(annotation: type, value: Any) -> Any:
    if annotation is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, bool) and annotation is not bool:
        raise DocmapError(f"Expected {annotation.__name__}, got bool", {"value": value})
    if not isinstance(value, annotation):
        raise DocmapError(
            f"Expected {annotation.__name__}, got {type(value).__name__}",
            {"value": repr(value)[:200]},
        )
    return value


def build_embedded(embedded_type: type, mapping: dict[str, Any]) -> Any:
    """Rebuild an embedded dataclass from its stored mapping (unknown keys ignored)."""
    hints = typing.get_type_hints(embedded_type)
    kwargs = {}
    for dc_field in dataclasses.fields(embedded_type):
        if dc_field.init and dc_field.name in mapping:
            kwargs[dc_field.name] = decode_value(hints.get(dc_field.name, Any), mapping[dc_field.name])
    return embedded_type(**kwargs)


def decode_field(descriptor: FieldDescriptor, value: Any) -> Any:
    """Decode the stored value of one field.

    Raises:
        DocmapError: If the value does not fit the field type
    """
    if descriptor.is_relation:
        return value
    try:
        return decode_value(descriptor.annotation, value)
    except DocmapError as e:
        raise DocmapError(f"Field '{descriptor.name}': {e.message}", e.details) from e


def apply_document(document: Document, stored: dict[str, Any]) -> None:
    """Assign the values of a stored mapping onto a record.

    Args:
        document: Record to fill
        stored: Mapping read from the store (keys are stored names)
    """
    for descriptor in get_descriptors(type(document)):
        if descriptor.name in stored:
            setattr(document, descriptor.attr, decode_field(descriptor, stored[descriptor.name]))


def normalize_references(document: Document) -> None:
    """Turn raw reference values of relation fields into ObjectId form.

    Hex strings become ObjectId, lists of them become list[ObjectId].
    Populated values (records) are left untouched.
    """
    for descriptor in get_descriptors(type(document)):
        if not descriptor.is_relation:
            continue
        value = getattr(document, descriptor.attr)
        if isinstance(value, str):
            setattr(document, descriptor.attr, to_object_id(value) or value)
        elif isinstance(value, (list, tuple)):
            setattr(
                document,
                descriptor.attr,
                [to_object_id(item) or item if isinstance(item, str) else item for item in value],
            )
