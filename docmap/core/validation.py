"""Declarative validation of records from their field descriptors.

RULE ORDER (per field, fields in declared order):
1. Relation cardinality of the value currently held
2. required
3. Text rules: minLen, maxLen, /pattern/flags, email (independent checks)
4. Reference text must be a 24 character hex object id

All applicable checks run; issues are collected, never raised. Validation
does not mutate the record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .descriptors import FieldDescriptor, get_descriptors
from .messages import MessageCatalog
from .types import Cardinality, is_object_id_hex

if TYPE_CHECKING:
    from .document import Document

EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$", re.IGNORECASE)


@dataclass(frozen=True)
class ValidationIssue:
    """One failed rule on one field."""
    field: str  # Stored field name
    code: str  # Message key, e.g. 'validation.field_required'
    message: str

    def __str__(self) -> str:
        return self.message


def is_email(value: str) -> bool:
    return EMAIL_PATTERN.match(value) is not None


def is_set(value: Any) -> bool:
    """Tell whether a field value counts as set.

    None is unset; sequences and mappings are set when non-empty; text,
    numbers and booleans are set when not their zero value; everything else
    (records, object ids, datetimes) is set.
    """
    if value is None:
        return False
    if isinstance(value, (list, tuple, dict, set, str, bytes)):
        return len(value) > 0
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return True


def _check_field(
    descriptor: FieldDescriptor,
    value: Any,
    messages: MessageCatalog,
) -> list[ValidationIssue]:
    issues = []
    name = descriptor.name

    def add(code: str, *values) -> None:
        issues.append(ValidationIssue(name, code, messages.format(code, name, *values)))

    if descriptor.is_relation and value is not None:
        if isinstance(value, (list, tuple)) and descriptor.cardinality is Cardinality.ONE:
            add("validation.field_invalid_relation1n")
        elif not isinstance(value, (list, tuple)) and descriptor.cardinality is Cardinality.MANY:
            add("validation.field_invalid_relation11")

    value_set = is_set(value)

    if descriptor.required and not value_set:
        add("validation.field_required")

    if isinstance(value, str):
        if value_set and descriptor.min_len > 0 and len(value) < descriptor.min_len:
            add("validation.field_minlen", descriptor.min_len)

        if value_set and descriptor.max_len > 0 and len(value) > descriptor.max_len:
            add("validation.field_maxlen", descriptor.max_len)

        if value_set and descriptor.pattern is not None and descriptor.pattern.search(value) is None:
            add("validation.field_invalid")

        if value_set and descriptor.validation.lower() == "email" and not is_email(value):
            add("validation.field_invalid")

        if descriptor.is_relation and not is_object_id_hex(value):
            add("validation.field_invalid_id")

    elif descriptor.is_relation and isinstance(value, (list, tuple)):
        for element in value:
            if isinstance(element, str) and not is_object_id_hex(element):
                add("validation.field_invalid_id")
                break

    return issues


def validate(document: Document, messages: MessageCatalog) -> tuple[bool, list[ValidationIssue]]:
    """Run every descriptor-driven rule against a record.

    Args:
        document: Record to validate
        messages: Catalog used to render issue messages

    Returns:
        Tuple of (is_valid, issues) with issues in field order
    """
    issues: list[ValidationIssue] = []
    for descriptor in get_descriptors(type(document)):
        value = getattr(document, descriptor.attr)
        issues.extend(_check_field(descriptor, value, messages))
    return len(issues) == 0, issues

