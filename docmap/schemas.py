"""Bundled resource access for docmap.

This module provides runtime access to the SQLite store schema and the
validation message catalogs shipped inside the package.

Lookup order:
- Try importlib.resources first (installed package)
- Fall back to file reading next to this module (development mode)
- Raise FileNotFoundError if the resource is not found in either location

USAGE:
    >>> from docmap.schemas import get_sql_schema, get_locale_messages
    >>>
    >>> store_sql = get_sql_schema('store')
    >>> messages = get_locale_messages('en-US')
    >>> messages['validation.field_required']
    "Field '%s' is required."
"""

from __future__ import annotations

import json
from importlib.resources import files as resource_files
from pathlib import Path


# ============================================================================
# CONSTANTS
# ============================================================================

VALID_SCHEMAS = {"store"}

LOCALES_FILENAME = "locals.json"


def _read_resource(*parts: str) -> str:
    """Read a bundled text resource below the 'schemas' directory.

    Args:
        *parts: Path segments below docmap/schemas/

    Returns:
        Resource content as string

    Raises:
        FileNotFoundError: If the resource is found in neither location
    """
    resource = resource_files("docmap").joinpath("schemas", *parts)
    if resource.is_file():
        return resource.read_text(encoding="utf-8")

    file_path = Path(__file__).parent.joinpath("schemas", *parts)
    if file_path.exists():
        return file_path.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Resource not found: {'/'.join(parts)}. "
        f"Searched package data and {file_path}"
    )


# ============================================================================
# SQL SCHEMA ACCESS
# ============================================================================

def get_sql_schema(name: str) -> str:
    """Get SQL schema content.

    Args:
        name: Schema name - currently only 'store'

    Returns:
        SQL schema content as string

    Raises:
        ValueError: If name is not a known schema
        FileNotFoundError: If schema file not found
    """
    if name not in VALID_SCHEMAS:
        raise ValueError(
            f"Invalid schema: {name!r}. Must be one of: {sorted(VALID_SCHEMAS)}"
        )
    return _read_resource("sql", f"{name}.sql")


# ============================================================================
# MESSAGE CATALOG ACCESS
# ============================================================================

def list_locales() -> list[str]:
    """List locales available in the bundled message catalog.

    Returns:
        Sorted list of locale names (e.g., ['de-DE', 'en-US'])
    """
    catalog = json.loads(_read_resource("locales", LOCALES_FILENAME))
    return sorted(catalog)


def get_locale_messages(locale: str) -> dict[str, str]:
    """Get the validation message templates for a locale.

    Args:
        locale: Locale name (e.g., 'en-US')

    Returns:
        Mapping of message key to printf-style template

    Raises:
        ValueError: If the locale is not in the catalog or the catalog is invalid JSON
        FileNotFoundError: If the catalog file is not found
    """
    content = _read_resource("locales", LOCALES_FILENAME)
    try:
        catalog = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in message catalog: {e}") from e

    if locale not in catalog:
        raise ValueError(
            f"Unknown locale: {locale!r}. Available: {sorted(catalog)}"
        )
    return dict(catalog[locale])
