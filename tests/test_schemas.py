"""Tests for docmap.schemas module.

Coverage:
- get_sql_schema(name) - Return the bundled store schema
- list_locales() / get_locale_messages(locale) - Bundled message catalogs
"""

import pytest

from docmap.schemas import get_locale_messages, get_sql_schema, list_locales


class TestGetSqlSchema:
    """Tests for get_sql_schema function."""

    def test_get_store_schema(self):
        """get_sql_schema('store') returns the document table schema."""
        schema = get_sql_schema('store')

        assert 'CREATE TABLE IF NOT EXISTS document' in schema
        assert '_schema_metadata' in schema
        assert 'json_valid' in schema

    def test_invalid_name_raises_value_error(self):
        with pytest.raises(ValueError, match="Invalid schema"):
            get_sql_schema('soil')


class TestLocales:
    """Tests for the bundled message catalogs."""

    def test_list_locales(self):
        assert list_locales() == ['de-DE', 'en-US']

    def test_locales_share_keys(self):
        """Every locale defines the same message keys."""
        keys = {locale: set(get_locale_messages(locale)) for locale in list_locales()}
        assert keys['de-DE'] == keys['en-US']

    def test_required_message(self):
        messages = get_locale_messages('en-US')
        assert messages['validation.field_required'] % 'name' == "Field 'name' is required."

    def test_unknown_locale(self):
        with pytest.raises(ValueError, match="Unknown locale"):
            get_locale_messages('xx-XX')

    def test_returns_copy(self):
        """Callers can modify the returned mapping freely."""
        messages = get_locale_messages('en-US')
        messages['validation.field_required'] = 'changed'

        assert get_locale_messages('en-US')['validation.field_required'] != 'changed'
