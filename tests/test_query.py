"""Tests for docmap.core.query.

Coverage:
- find / find_one / find_id multiplicity and binding
- Builders: select, sort, limit, skip (chainable, idempotent)
- NotFoundError vs. empty list, MultiplicityError
- Decoding of stored values back to annotated types
"""

import pytest
from bson import ObjectId

from docmap.exceptions import InvalidIdError, MultiplicityError, NotFoundError

from records import Address, Message, User, make_user


@pytest.fixture
def saved_users(users):
    """Three saved users: anna, bert, carl."""
    saved = []
    for first_name in ("Anna", "Bert", "Carl"):
        user = users.bind(make_user(first_name=first_name, user_name=first_name.lower()))
        user.save()
        saved.append(user)
    return saved


class TestFind:
    """Tests for many-record queries."""

    def test_all_in_insertion_order(self, users, saved_users):
        found = users.find().all()

        assert [user.first_name for user in found] == ["Anna", "Bert", "Carl"]
        assert all(user.model is users for user in found)

    def test_filter(self, users, saved_users):
        found = users.find({"firstname": "Bert"}).all()

        assert len(found) == 1
        assert found[0].id == saved_users[1].id

    def test_no_match_is_empty_list(self, users, saved_users):
        assert users.find({"firstname": "Nobody"}).all() == []

    def test_sort_limit_skip(self, users, saved_users):
        found = users.find().sort("-firstname").skip(1).limit(1).all()
        assert [user.first_name for user in found] == ["Bert"]

    def test_repeated_builders_are_idempotent(self, users):
        query = users.find().sort("firstname").sort("firstname").populate("messages").populate("messages")

        assert query.sort_keys == ["firstname"]
        assert query.populate_fields == ["messages"]

    def test_filter_is_copied(self, users, saved_users):
        filter = {"firstname": "Anna"}
        query = users.find(filter)
        filter["firstname"] = "Carl"

        assert query.all()[0].first_name == "Anna"

    def test_select_leaves_other_fields_default(self, users, saved_users):
        found = users.find({"firstname": "Anna"}).select(["firstname"]).all()

        assert found[0].first_name == "Anna"
        assert found[0].last_name == ""
        assert found[0].id == saved_users[0].id

    def test_exec_extends_given_list(self, users, saved_users):
        target = []

        result = users.find().exec(target)

        assert result is target
        assert len(target) == 3

    def test_count(self, users, saved_users):
        assert users.find({"firstname": {"$in": ["Anna", "Carl"]}}).count() == 2
        assert users.count() == 3


class TestFindOne:
    """Tests for single-record queries."""

    def test_one(self, users, saved_users):
        user = users.find_one({"username": "carl"}).one()

        assert isinstance(user, User)
        assert user.id == saved_users[2].id

    def test_exec_fills_given_record(self, users, saved_users):
        target = users.new()

        users.find_one({"username": "anna"}).exec(target)

        assert target.first_name == "Anna"
        assert target.id == saved_users[0].id

    def test_no_match_raises_not_found(self, users):
        with pytest.raises(NotFoundError):
            users.find_one({"username": "nobody"}).one()

    def test_find_id_accepts_hex_text(self, users, saved_users):
        user = users.find_id(str(saved_users[1].id)).one()
        assert user.first_name == "Bert"

    def test_find_id_rejects_invalid_text(self, users):
        with pytest.raises(InvalidIdError):
            users.find_id("nope")

    def test_find_id_unknown(self, users):
        with pytest.raises(NotFoundError):
            users.find_id(ObjectId()).one()


class TestMultiplicity:
    """Tests for exec() target checks."""

    def test_many_query_into_record(self, users):
        with pytest.raises(MultiplicityError):
            users.find().exec(users.new())

    def test_single_query_into_list(self, users):
        with pytest.raises(MultiplicityError):
            users.find_one().exec([])

    def test_unsupported_target(self, users):
        with pytest.raises(MultiplicityError):
            users.find().exec({})


class TestDecoding:
    """Tests for values read back from the store."""

    def test_embedded_dataclass_round_trip(self, users):
        user = users.bind(make_user(address=Address(street="Main St 1", city="Berlin")))
        user.save()

        loaded = users.find_id(user.id).one()

        assert loaded.address == Address(street="Main St 1", city="Berlin")

    def test_references_are_object_ids(self, users, messages):
        sender = users.bind(make_user())
        sender.save()
        message = messages.bind(Message(text="hi", sender=sender, recipients=[sender.id]))
        message.save()

        loaded = messages.find_id(message.id).one()

        assert loaded.sender == sender.id
        assert isinstance(loaded.sender, ObjectId)
        assert loaded.recipients == [sender.id]

    def test_soft_deleted_records_still_readable(self, users, saved_users):
        saved_users[0].delete()

        assert users.find({"deleted": False}).count() == 2
        assert users.find_id(saved_users[0].id).one().deleted is True
