"""Tests for docmap.core.registry and Connection registration."""

import dataclasses
import logging
from dataclasses import dataclass

import pytest
from bson import ObjectId

from docmap import Document, field, relation
from docmap.core.registry import DocumentRegistry
from docmap.exceptions import RegistrationError, SchemaError, ValidationError

from records import Message, User


class TestDocumentRegistry:
    """Tests for DocumentRegistry."""

    def test_register_and_resolve(self, store):
        registry = DocumentRegistry(store)

        entry = registry.register(User, "users")

        assert entry.type_name == "user"
        assert entry.collection.name == "users"
        assert registry.resolve("User") is entry
        assert registry.resolve("USER") is entry
        assert "user" in registry
        assert len(registry) == 1

    def test_unknown_type(self, store):
        with pytest.raises(RegistrationError, match="Ghost"):
            DocumentRegistry(store).resolve("Ghost")

    def test_duplicate_registration_warns(self, store, caplog):
        registry = DocumentRegistry(store)
        first = registry.register(User, "users")

        with caplog.at_level(logging.WARNING, logger="docmap"):
            second = registry.register(User, "people")

        assert second is first
        assert second.collection.name == "users"
        assert "twice" in caplog.text

    def test_malformed_type_fails_at_registration(self, store):
        @dataclass
        class Broken(Document):
            name: str = dataclasses.field(default="", metadata={"maxLen": "lots"})

        with pytest.raises(SchemaError):
            DocumentRegistry(store).register(Broken, "broken")

    def test_rejects_non_documents(self, store):
        @dataclass
        class Plain:
            name: str = ""

        with pytest.raises(TypeError):
            DocumentRegistry(store).register(Plain, "plain")

    def test_entry_new_is_unbound(self, store):
        entry = DocumentRegistry(store).register(Message, "messages")

        message = entry.new()

        assert isinstance(message, Message)
        assert not message.is_bound


class TestConnection:
    """Tests for Connection lookups."""

    def test_model_is_cached(self, connection):
        assert connection.model("user") is connection.model("User")

    def test_register_returns_model(self, connection):
        assert connection.register(User, "users") is connection.model("User")

    def test_document_is_bound(self, connection):
        message = connection.document("message")

        assert isinstance(message, Message)
        assert message.model is connection.model("Message")

    def test_unknown_model(self, connection):
        with pytest.raises(RegistrationError):
            connection.model("Ghost")

    def test_messages_field_does_not_break_validation(self, connection):
        """A record field named 'messages' leaves the catalog reachable."""

        @dataclass
        class Inbox(Document):
            owner: str = field(default="", required=True, min_len=3)
            messages: list[Message | ObjectId] | None = relation("Message", many=True)

        inboxes = connection.register(Inbox, "inboxes")
        inbox = inboxes.new({"owner": "Mo"})

        valid, issues = inbox.validate()

        assert valid is False
        assert [issue.code for issue in issues] == ["validation.field_minlen"]
        assert issues[0].message == "Field 'owner' must be at least 3 characters long."

        with pytest.raises(ValidationError):
            inbox.save()
        assert inboxes.count() == 0

    def test_field_hiding_a_method_fails_at_registration(self, connection):
        @dataclass
        class Broken(Document):
            save: bool = False

        with pytest.raises(SchemaError, match="hides"):
            connection.register(Broken, "broken")
