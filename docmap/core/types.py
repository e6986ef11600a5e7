"""Domain types for docmap.

Object ids are bson.ObjectId values. Their textual form is exactly 24
hexadecimal characters; anything else is not a reference.
"""

from enum import Enum

from bson import ObjectId


class Cardinality(str, Enum):
    """Relation cardinality of a relation field."""

    ONE = "one"
    MANY = "many"


def is_object_id_hex(value: str) -> bool:
    """Return True if value is the 24 character hex form of an ObjectId.

    Args:
        value: Text to check

    Returns:
        True for valid hex ids, False otherwise

    Examples:
        >>> is_object_id_hex("55dccbf4113c615e49000001")
        True
        >>> is_object_id_hex("not-an-id")
        False
    """
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)


def to_object_id(value) -> ObjectId | None:
    """Convert an ObjectId or its hex text to ObjectId.

    Args:
        value: ObjectId, hex string, or anything else

    Returns:
        ObjectId, or None if value has no valid id form
    """
    if isinstance(value, ObjectId):
        return value
    if is_object_id_hex(value):
        return ObjectId(value)
    return None
