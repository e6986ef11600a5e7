"""Tests for docmap.core.validation.

Coverage:
- Required fields and the is-set rule
- Length, pattern and email rules on text
- Relation cardinality and object id checks
- Localized messages and custom validate() overrides
"""

import pytest
from bson import ObjectId

from docmap.core.messages import MessageCatalog
from docmap.core.descriptors import compile_rule
from docmap.core.validation import is_email, is_set, validate

from records import Account, Message, User, make_user


def codes(issues):
    return [(issue.field, issue.code) for issue in issues]


class TestIsSet:
    """Tests for the is-set rule."""

    @pytest.mark.parametrize("value", [None, "", 0, 0.0, False, [], (), {}])
    def test_unset_values(self, value):
        assert is_set(value) is False

    @pytest.mark.parametrize("value", ["x", 1, True, [None], {"a": 1}, ObjectId()])
    def test_set_values(self, value):
        assert is_set(value) is True


class TestRules:
    """Tests for the rule helpers."""

    def test_compile_rule_with_flags(self):
        pattern = compile_rule("/^[a-z]+$/i")
        assert pattern.match("ABC")

    def test_compile_rule_ignores_global_flag(self):
        assert compile_rule("/^a/g").match("abc")

    def test_compile_rule_rejects_undelimited(self):
        assert compile_rule("email") is None

    def test_is_email(self):
        assert is_email("max@example.com")
        assert is_email("Max.Mustermann@Example.COM")
        assert not is_email("max@")
        assert not is_email("no-at-sign.com")


class TestValidate:
    """Tests for validate() on records."""

    def test_valid_record(self):
        valid, issues = make_user().validate()

        assert valid is True
        assert issues == []

    def test_required_field_named_in_error(self):
        """An unset required field yields an error naming the field."""
        valid, issues = make_user(last_name="").validate()

        assert valid is False
        assert codes(issues) == [("lastname", "validation.field_required")]
        assert "lastname" in str(issues[0])

    def test_short_name_and_two_missing_fields(self):
        """A too short name plus two unset required fields give exactly three errors."""
        valid, issues = User(first_name="M").validate()

        assert valid is False
        assert len(issues) == 3
        assert codes(issues) == [
            ("firstname", "validation.field_minlen"),
            ("lastname", "validation.field_required"),
            ("username", "validation.field_required"),
        ]

    def test_max_len(self):
        valid, issues = make_user(first_name="x" * 31).validate()

        assert codes(issues) == [("firstname", "validation.field_maxlen")]
        assert "30" in issues[0].message

    def test_pattern_rule(self):
        valid, issues = make_user(user_name="max mustermann").validate()
        assert codes(issues) == [("username", "validation.field_invalid")]

    def test_email_rule(self):
        valid, issues = make_user(email="not-an-email").validate()
        assert codes(issues) == [("email", "validation.field_invalid")]

    def test_unset_optional_text_skips_rules(self):
        """Rules on text apply only when the value is set."""
        valid, issues = make_user(email="").validate()
        assert valid is True

    def test_reference_text_must_be_object_id(self):
        valid, issues = make_user(best_friend="not-an-id").validate()
        assert codes(issues) == [("bestFriend", "validation.field_invalid_id")]

    def test_reference_text_accepted_when_hex(self):
        valid, issues = make_user(best_friend=str(ObjectId())).validate()
        assert valid is True

    def test_reference_list_reports_first_invalid_element_once(self):
        message = Message(text="hi", recipients=[str(ObjectId()), "bad", "worse"])
        valid, issues = message.validate()

        assert codes(issues) == [("recipients", "validation.field_invalid_id")]

    def test_list_in_one_relation(self):
        valid, issues = make_user(best_friend=[ObjectId()]).validate()
        assert codes(issues) == [("bestFriend", "validation.field_invalid_relation1n")]

    def test_scalar_in_many_relation(self):
        valid, issues = make_user(messages=ObjectId()).validate()
        assert codes(issues) == [("messages", "validation.field_invalid_relation11")]

    def test_validation_does_not_mutate(self):
        user = User(first_name="M")
        before = repr(user)

        user.validate()

        assert repr(user) == before


class TestMessages:
    """Tests for message rendering."""

    def test_catalog_locale(self):
        _, issues = validate(User(first_name="Max", user_name="max"), MessageCatalog.for_locale("de-DE"))
        assert issues[0].message == "Feld 'lastname' ist erforderlich."

    def test_catalog_override(self):
        catalog = MessageCatalog.for_locale("en-US", {"validation.field_required": "%s missing"})
        _, issues = validate(User(first_name="Max", user_name="max"), catalog)

        assert issues[0].message == "lastname missing"

    def test_unknown_key_renders_as_key(self):
        assert MessageCatalog({}).format("validation.unknown", "x") == "validation.unknown"


class TestCustomValidate:
    """Tests for overriding Document.validate()."""

    def test_exclusive_fields(self):
        valid, issues = Account(email="a@example.com", phone="123").validate()

        assert valid is False
        assert codes(issues) == [("email", "validation.field_not_exclusive")]

    def test_one_of_required(self):
        valid, issues = Account().validate()
        assert codes(issues) == [("email", "validation.field_required_exclusive")]

    def test_default_rules_still_run(self):
        valid, issues = Account(email="broken").validate()
        assert codes(issues) == [("email", "validation.field_invalid")]
