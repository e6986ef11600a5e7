"""Message catalog used to render validation issues.

A catalog is owned by a Connection (one per configuration), never by the
process. Templates are printf-style ('%s') as in the bundled catalog.
"""

from __future__ import annotations

from ..schemas import get_locale_messages

DEFAULT_LOCALE = "en-US"


class MessageCatalog:
    """Lookup of message templates by key."""

    def __init__(self, messages: dict[str, str] | None = None, locale: str = DEFAULT_LOCALE):
        self.locale = locale
        self._messages = dict(messages or {})

    @classmethod
    def for_locale(cls, locale: str = DEFAULT_LOCALE, overrides: dict[str, str] | None = None) -> MessageCatalog:
        """Build a catalog from the bundled locale file.

        Args:
            locale: Locale name (e.g., 'en-US')
            overrides: Templates replacing bundled entries

        Raises:
            ValueError: If the locale is unknown
        """
        messages = get_locale_messages(locale)
        messages.update(overrides or {})
        return cls(messages, locale)

    def format(self, key: str, *values) -> str:
        """Render a message; unknown keys render as the key itself."""
        template = self._messages.get(key)
        if template is None:
            return key
        return template % values if values else template

    def __contains__(self, key: str) -> bool:
        return key in self._messages


_default_catalog: MessageCatalog | None = None


def default_catalog() -> MessageCatalog:
    """Return the read-only en-US catalog used by unbound records."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = MessageCatalog.for_locale(DEFAULT_LOCALE)
    return _default_catalog
