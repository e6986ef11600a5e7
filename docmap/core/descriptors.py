"""Field descriptors: per-type metadata driving validation, relations and codec.

Record types are dataclasses. Each field may carry docmap metadata, written
either through the field()/relation() helpers or directly:

    @dataclass
    class Post(Document):
        title: str = field(default="", required=True, min_len=2)
        author: User | ObjectId | None = relation("User")
        comments: list[Comment | ObjectId] | None = relation("Comment", many=True, autosave=True)

    # equivalent raw metadata, e.g. for generated types
    title: str = dataclasses.field(default="", metadata={"required": "true", "minLen": "2"})

Recognized metadata keys: required, minLen, maxLen, validation, model,
relation ("one" | "many"), autosave, name (stored key).

Descriptors are extracted once per type (at registration) and cached.
Malformed metadata raises SchemaError at that point, not at first use.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import re
import types
import typing
from dataclasses import dataclass
from typing import Any

from ..exceptions import SchemaError
from .types import Cardinality

_MISSING = dataclasses.MISSING

_CARDINALITY_ALIASES = {
    "one": Cardinality.ONE,
    "11": Cardinality.ONE,
    "many": Cardinality.MANY,
    "1n": Cardinality.MANY,
}

_SEQUENCE_ORIGINS = {list, tuple, collections.abc.Sequence, collections.abc.MutableSequence}

# Matches a JavaScript-style delimited regular expression: /body/flags
DELIMITED_PATTERN = re.compile(r"^/((?:[^\r\n\[/\\]|\\.|\[(?:[^\r\n\]\\]|\\.)*\])+)/([gimsx]*)$")

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

# Keyed by record type; filled at registration and read-only afterwards
_DESCRIPTOR_CACHE: dict[type, tuple["FieldDescriptor", ...]] = {}


@dataclass(frozen=True)
class FieldDescriptor:
    """Immutable metadata of one record field."""
    attr: str  # Python attribute name
    name: str  # Stored key and name used in validation messages
    annotation: Any  # Resolved type hint with Optional stripped
    required: bool = False
    min_len: int = 0
    max_len: int = 0
    validation: str = ""
    model: str = ""  # Relation target type name, '' if not a relation
    cardinality: Cardinality = Cardinality.ONE
    autosave: bool = False
    is_sequence: bool = False  # Annotation is sequence-shaped
    pattern: re.Pattern | None = dataclasses.field(default=None, compare=False)  # Compiled /regex/ rule

    @property
    def is_relation(self) -> bool:
        return bool(self.model)


def field(
    *,
    default: Any = _MISSING,
    default_factory: Any = _MISSING,
    required: bool = False,
    min_len: int | None = None,
    max_len: int | None = None,
    validation: str | None = None,
    name: str | None = None,
) -> Any:
    """Declare a record field with validation metadata.

    Args:
        default: Default value
        default_factory: Zero-argument callable producing the default
        required: Field must be set for the record to validate
        min_len: Minimum length of a text value
        max_len: Maximum length of a text value
        validation: 'email' or a delimited regular expression ('/^[a-z]+$/i')
        name: Stored key (defaults to the attribute name)

    Returns:
        A dataclasses.field carrying the metadata
    """
    metadata: dict[str, Any] = {"required": required}
    if min_len is not None:
        metadata["minLen"] = min_len
    if max_len is not None:
        metadata["maxLen"] = max_len
    if validation is not None:
        metadata["validation"] = validation
    if name is not None:
        metadata["name"] = name
    return dataclasses.field(default=default, default_factory=default_factory, metadata=metadata)


def relation(
    model: str,
    *,
    many: bool = False,
    autosave: bool = False,
    required: bool = False,
    name: str | None = None,
) -> Any:
    """Declare a relation field referencing another registered record type.

    The field holds either the related record(s) (populated form) or their
    ObjectId(s) (reference form). It defaults to None.

    Args:
        model: Registered type name of the related record
        many: One-to-many relation (the field holds a list)
        autosave: Saving the owner saves the related records first
        required: Relation must be set for the record to validate
        name: Stored key (defaults to the attribute name)

    Returns:
        A dataclasses.field carrying the metadata
    """
    metadata: dict[str, Any] = {
        "model": model,
        "relation": Cardinality.MANY.value if many else Cardinality.ONE.value,
        "autosave": autosave,
        "required": required,
    }
    if name is not None:
        metadata["name"] = name
    return dataclasses.field(default=None, metadata=metadata)


def _parse_bool(value: Any, key: str, where: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise SchemaError(f"Check your {key} metadata on {where} - must be boolean, got {value!r}")


def _parse_int(value: Any, key: str, where: str) -> int:
    if isinstance(value, bool):
        raise SchemaError(f"Check your {key} metadata on {where} - must be numeric, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise SchemaError(f"Check your {key} metadata on {where} - must be numeric, got {value!r}")


def compile_rule(rule: str) -> re.Pattern | None:
    """Compile a '/pattern/flags' rule, or return None if rule is not delimited.

    The 'g' flag is accepted and ignored.

    Raises:
        re.error: If the delimited body is not a valid regular expression
    """
    match = DELIMITED_PATTERN.match(rule)
    if not match:
        return None
    flags = 0
    for flag in match.group(2):
        flags |= _FLAG_MAP.get(flag, 0)
    return re.compile(match.group(1), flags)


def _shadows_method(document_type: type, name: str) -> bool:
    """Tell whether a field would hide a method or property of a base class."""
    for base in document_type.__mro__[1:]:
        attribute = vars(base).get(name)
        if isinstance(attribute, (property, classmethod, staticmethod, types.FunctionType)):
            return True
    return False


def strip_optional(annotation: Any) -> Any:
    """Remove NoneType from a Union annotation (X | None -> X)."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
        return typing.Union[tuple(members)]
    return annotation


def is_sequence_annotation(annotation: Any) -> bool | None:
    """Tell whether an annotation is sequence-shaped.

    Returns:
        True for list/tuple/Sequence (or unions made only of them), False
        for other concrete types, None when the shape is open (Any, object)
    """
    if annotation is Any or annotation is object:
        return None
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        shapes = {is_sequence_annotation(arg) for arg in typing.get_args(annotation)}
        return shapes.pop() if len(shapes) == 1 else None
    if origin in _SEQUENCE_ORIGINS or annotation in _SEQUENCE_ORIGINS:
        return True
    if annotation is str or annotation is bytes:
        return False
    return False


def extract_descriptors(document_type: type) -> tuple[FieldDescriptor, ...]:
    """Build the ordered field descriptors of a record type.

    Args:
        document_type: A dataclass record type

    Returns:
        Tuple of FieldDescriptor in declared field order

    Raises:
        SchemaError: If the type is not a dataclass, a type hint cannot be
            resolved, or any field metadata is malformed
    """
    if not dataclasses.is_dataclass(document_type):
        raise SchemaError(f"{document_type.__name__} must be a dataclass")

    try:
        hints = typing.get_type_hints(document_type)
    except NameError as e:
        raise SchemaError(
            f"Could not resolve type hints of {document_type.__name__}: {e}"
        ) from e

    descriptors = []
    for dc_field in dataclasses.fields(document_type):
        metadata = dc_field.metadata
        if metadata.get("transient"):
            continue

        where = f"{document_type.__name__}.{dc_field.name}"
        if _shadows_method(document_type, dc_field.name):
            raise SchemaError(f"Field name of {where} hides a Document method or property")

        annotation = strip_optional(hints.get(dc_field.name, Any))
        sequence_shape = is_sequence_annotation(annotation)

        model = metadata.get("model", "") or ""
        relation_tag = metadata.get("relation")
        if relation_tag is not None and not model:
            raise SchemaError(f"Relation metadata on {where} requires a 'model'")

        cardinality = Cardinality.ONE
        if relation_tag is not None:
            try:
                cardinality = _CARDINALITY_ALIASES[str(relation_tag).lower()]
            except KeyError:
                raise SchemaError(
                    f"Check your relation metadata on {where} - must be 'one' or 'many', "
                    f"got {relation_tag!r}"
                ) from None

        rule = str(metadata.get("validation") or "")
        try:
            pattern = compile_rule(rule)
        except re.error as e:
            raise SchemaError(f"Check your validation metadata on {where} - invalid pattern {rule!r}: {e}") from e

        if model:
            if sequence_shape is True and cardinality is Cardinality.ONE:
                raise SchemaError(f"Relation must be 'many' when using sequences ({where})")
            if sequence_shape is False and cardinality is Cardinality.MANY:
                raise SchemaError(f"Relation must be 'one' when not using sequences ({where})")
            if sequence_shape is None:
                sequence_shape = cardinality is Cardinality.MANY

        descriptors.append(FieldDescriptor(
            attr=dc_field.name,
            name=str(metadata.get("name") or dc_field.name),
            annotation=annotation,
            required=_parse_bool(metadata.get("required", False), "required", where),
            min_len=_parse_int(metadata.get("minLen", 0), "minLen", where),
            max_len=_parse_int(metadata.get("maxLen", 0), "maxLen", where),
            validation=rule,
            model=model,
            cardinality=cardinality,
            autosave=_parse_bool(metadata.get("autosave", False), "autosave", where),
            is_sequence=bool(sequence_shape),
            pattern=pattern,
        ))

    names = [descriptor.name for descriptor in descriptors]
    duplicates = {name for name in names if names.count(name) > 1}
    if duplicates:
        raise SchemaError(f"{document_type.__name__} stores several fields under {sorted(duplicates)}")

    return tuple(descriptors)


def get_descriptors(document_type: type) -> tuple[FieldDescriptor, ...]:
    """Return the cached descriptors of a record type, extracting them once."""
    descriptors = _DESCRIPTOR_CACHE.get(document_type)
    if descriptors is None:
        descriptors = extract_descriptors(document_type)
        _DESCRIPTOR_CACHE[document_type] = descriptors
    return descriptors


def relation_descriptors(document_type: type) -> list[FieldDescriptor]:
    """Return only the relation descriptors of a record type."""
    return [descriptor for descriptor in get_descriptors(document_type) if descriptor.is_relation]


def lookup_descriptor(document_type: type, name: str) -> FieldDescriptor | None:
    """Find a descriptor by attribute name or stored name."""
    for descriptor in get_descriptors(document_type):
        if name in (descriptor.attr, descriptor.name):
            return descriptor
    return None
