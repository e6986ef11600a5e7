"""Translation of Mongo-style filters into SQLite WHERE/ORDER BY clauses.

QUERY BUILDER SCOPE:
The subset of the Mongo query language the ODM itself issues, plus the
common comparison operators applications reach for. Don't build a full
query engine - unsupported operators raise ValueError instead of being
silently ignored.

Supported:
    {"field": value}                 equality; matches array elements too
    {"field": None}                  missing or null
    {"field": {"$in": [...]}}        membership; matches array elements too
    {"field": {"$nin": [...]}}
    {"field": {"$ne": value}}
    {"field": {"$gt"|"$gte"|"$lt"|"$lte": value}}
    {"field": {"$exists": bool}}
    {"$and": [filter, ...]}, {"$or": [filter, ...]}

Dotted keys address nested documents ("address.city"). The key '_id'
maps to the id column.
"""

import re
from datetime import datetime
from typing import Any, Sequence

from bson import ObjectId

COMPARISON_OPERATORS = {
    "$gt": ">",
    "$gte": ">=",
    "$lt": "<",
    "$lte": "<=",
}

_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


def encode_value(value: Any) -> Any:
    """Convert a filter or document value to its JSON/SQLite representation.

    Args:
        value: Python value (ObjectId, datetime, list, dict, scalar)

    Returns:
        Value with ObjectIds as hex strings and datetimes as ISO 8601 strings
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def json_path(key: str) -> str:
    """Return the SQLite JSON path for a (possibly dotted) document key.

    Raises:
        ValueError: If the key contains characters outside [A-Za-z0-9_.]
    """
    if not _KEY_PATTERN.match(key):
        raise ValueError(f"Unsupported document key in query: {key!r}")
    return f"$.{key}"


def _membership(key: str, operator: str, values: list[Any]) -> tuple[str, list[Any]]:
    """Build an element-wise membership test (scalars and arrays alike)."""
    placeholders = ", ".join("?" for _ in values) or "NULL"
    clause = (
        "EXISTS (SELECT 1 FROM json_each(document.data, ?) AS element "
        f"WHERE element.value {operator} ({placeholders}))"
    )
    return clause, [json_path(key), *values]


def _field_condition(key: str, condition: Any) -> tuple[str, list[Any]]:
    """Build the clause for one field of a filter."""
    is_id = key == "_id"

    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        parts = []
        params: list[Any] = []
        for operator, operand in condition.items():
            if operator in ("$in", "$nin"):
                values = [encode_value(v) for v in operand]
                if is_id:
                    placeholders = ", ".join("?" for _ in values) or "NULL"
                    negate = "NOT " if operator == "$nin" else ""
                    parts.append(f"id {negate}IN ({placeholders})")
                    params.extend(values)
                else:
                    clause, clause_params = _membership(key, "IN", values)
                    parts.append(clause if operator == "$in" else f"NOT {clause}")
                    params.extend(clause_params)
            elif operator == "$ne":
                if operand is None:
                    parts.append("id IS NOT NULL" if is_id else "json_extract(data, ?) IS NOT NULL")
                    if not is_id:
                        params.append(json_path(key))
                elif is_id:
                    parts.append("id != ?")
                    params.append(encode_value(operand))
                else:
                    clause, clause_params = _membership(key, "IN", [encode_value(operand)])
                    parts.append(f"NOT {clause}")
                    params.extend(clause_params)
            elif operator in COMPARISON_OPERATORS:
                sql_operator = COMPARISON_OPERATORS[operator]
                if is_id:
                    parts.append(f"id {sql_operator} ?")
                    params.append(encode_value(operand))
                else:
                    parts.append(f"json_extract(data, ?) {sql_operator} ?")
                    params.extend([json_path(key), encode_value(operand)])
            elif operator == "$exists":
                if is_id:
                    parts.append("1=1" if operand else "1=0")
                else:
                    parts.append(
                        "json_type(data, ?) IS NOT NULL" if operand else "json_type(data, ?) IS NULL"
                    )
                    params.append(json_path(key))
            else:
                raise ValueError(f"Unsupported query operator: {operator}")
        return " AND ".join(parts), params

    if condition is None:
        if is_id:
            return "1=0", []
        return "json_extract(data, ?) IS NULL", [json_path(key)]

    if is_id:
        return "id = ?", [encode_value(condition)]
    return _membership(key, "IN", [encode_value(condition)])


def build_where_clause(filter: dict[str, Any] | None) -> tuple[str, list[Any]]:
    """Build a WHERE clause (without "WHERE") from a Mongo-style filter.

    Args:
        filter: Filter mapping; None or {} matches everything

    Returns:
        Tuple of (where_clause, params)

    Raises:
        ValueError: If the filter uses an unsupported operator or key

    Examples:
        >>> build_where_clause({})
        ('1=1', [])

        >>> build_where_clause({"_id": {"$in": [oid]}})
        ('(id IN (?))', ['5f1d...'])
    """
    where_parts = []
    params: list[Any] = []

    for key, condition in (filter or {}).items():
        if key in ("$and", "$or"):
            sub_clauses = []
            for sub_filter in condition:
                sub_clause, sub_params = build_where_clause(sub_filter)
                sub_clauses.append(f"({sub_clause})")
                params.extend(sub_params)
            joiner = " AND " if key == "$and" else " OR "
            where_parts.append(joiner.join(sub_clauses) if sub_clauses else "1=1")
        elif key.startswith("$"):
            raise ValueError(f"Unsupported top-level query operator: {key}")
        else:
            clause, clause_params = _field_condition(key, condition)
            where_parts.append(f"({clause})")
            params.extend(clause_params)

    where_clause = " AND ".join(where_parts) if where_parts else "1=1"
    return where_clause, params


def build_order_clause(sort: Sequence[str]) -> tuple[str, list[Any]]:
    """Build an ORDER BY clause (without "ORDER BY") from sort keys.

    Args:
        sort: Keys such as ["lastname", "-createdAt"]; '-' means descending

    Returns:
        Tuple of (order_clause, params); order_clause is '' for no keys
    """
    order_parts = []
    params = []

    for sort_key in sort:
        descending = sort_key.startswith("-")
        key = sort_key.lstrip("+-")
        direction = "DESC" if descending else "ASC"
        if key == "_id":
            order_parts.append(f"id {direction}")
        else:
            order_parts.append(f"json_extract(data, ?) {direction}")
            params.append(json_path(key))

    return ", ".join(order_parts), params


def apply_projection(
    document: dict[str, Any],
    projection: dict[str, Any] | Sequence[str] | None,
) -> dict[str, Any]:
    """Apply an inclusion or exclusion projection to a loaded document.

    Args:
        document: Decoded document including '_id'
        projection: Field names to include, {field: 1} to include or
            {field: 0} to exclude. Only top-level keys are supported.

    Returns:
        Projected copy of the document ('_id' is kept unless excluded)
    """
    if not projection:
        return document

    if not isinstance(projection, dict):
        projection = {key: 1 for key in projection}

    included = {key for key, flag in projection.items() if flag}
    excluded = {key for key, flag in projection.items() if not flag}

    if included - {"_id"}:
        keep = included | ({"_id"} if "_id" not in excluded else set())
        return {key: value for key, value in document.items() if key in keep}
    return {key: value for key, value in document.items() if key not in excluded}
