from unittest.mock import MagicMock

import pytest

from schemas import Contact, Delegate, Group, PermissionLevel, ProfileRecord
from stores import MemoryStorage, MongoStorage, build_storage
from conftest import make_record


@pytest.fixture
def mongo():
    collections = {}

    def collection(name):
        return collections.setdefault(name, MagicMock(name=name))

    db = MagicMock()
    db.__getitem__.side_effect = collection
    return db, collections


def test_memory_reads_are_copies(storage):
    storage.save_record("a", make_record())
    record = storage.get_record("a")
    record.personal.name = "changed"
    assert storage.get_record("a").personal.name == "Christine Nguyen"


def test_memory_never_stores_derived_flag(storage):
    record = make_record()
    record.ai_agent_visible = True
    storage.save_record("a", record)
    assert storage.get_record("a").ai_agent_visible is None
    assert record.ai_agent_visible is True


def test_memory_groups_sorted_and_scoped(storage):
    storage.save_group("a", Group(id="g2", label="Two", share_code="BBBBBB", display_order=2))
    storage.save_group("a", Group(id="g1", label="One", share_code="AAAAAA", display_order=1))
    storage.save_group("b", Group(id="g3", label="Other", share_code="CCCCCC"))
    assert [g.id for g in storage.list_groups("a")] == ["g1", "g2"]
    assert storage.get_group("b", "g1") is None
    assert storage.delete_group("a", "g1") is True
    assert storage.delete_group("a", "g1") is False


def test_memory_settings_distinguish_missing_and_empty(storage):
    assert storage.get_visible_fields("a", "public") is None
    storage.set_visible_fields("a", "public", [])
    assert storage.get_visible_fields("a", "public") == []
    assert storage.list_visible_fields("a") == {"public": []}
    assert storage.delete_visible_fields("a", "public") is True
    assert storage.get_visible_fields("a", "public") is None


def test_memory_find_delegate_across_owners(storage):
    storage.save_delegate(Delegate(owner_id="boss", delegate_id="rep"))
    assert storage.find_delegate("rep").owner_id == "boss"
    assert storage.find_delegate("boss") is None


def test_build_storage_without_db():
    assert isinstance(build_storage(None), MemoryStorage)


def test_build_storage_with_db(mongo):
    db, _ = mongo
    assert isinstance(build_storage(db), MongoStorage)


def test_mongo_record_roundtrip(mongo):
    db, collections = mongo
    storage = MongoStorage(db)
    record = make_record()
    record.ai_agent_visible = True

    storage.save_record("a", record)

    query, update = collections["profile"].update_one.call_args[0]
    assert query == {"user_id": "a"}
    assert "ai_agent_visible" not in update["$set"]["card"]
    assert collections["profile"].update_one.call_args[1] == {"upsert": True}

    collections["profile"].find_one.return_value = {"_id": "x", "user_id": "a", "card": update["$set"]["card"]}
    loaded = storage.get_record("a")
    assert loaded.personal.business_name == "Design Solutions"
    assert loaded.ai_agent_visible is None


def test_mongo_missing_record(mongo):
    db, collections = mongo
    collections["profile"] = MagicMock()
    collections["profile"].find_one.return_value = None
    assert MongoStorage(db).get_record("a") is None


def test_mongo_save_group_scopes_by_owner(mongo):
    db, collections = mongo
    group = Group(id="public", label="Public", share_code="ABC123", is_default=True)
    MongoStorage(db).save_group("owner", group)
    query, doc = collections["share_group"].replace_one.call_args[0]
    assert query == {"owner_id": "owner", "id": "public"}
    assert doc["owner_id"] == "owner"
    assert doc["share_code"] == "ABC123"


def test_mongo_list_groups_sorted(mongo):
    db, collections = mongo
    collections["share_group"] = MagicMock()
    collections["share_group"].find.return_value = [
        {"_id": 1, "owner_id": "o", "id": "b", "label": "B", "share_code": "BBBBBB", "display_order": 1},
        {"_id": 2, "owner_id": "o", "id": "a", "label": "A", "share_code": "AAAAAA", "display_order": 0},
    ]
    assert [g.id for g in MongoStorage(db).list_groups("o")] == ["a", "b"]


def test_mongo_visible_fields(mongo):
    db, collections = mongo
    storage = MongoStorage(db)
    settings = collections["share_settings"] = MagicMock()

    settings.find_one.return_value = None
    assert storage.get_visible_fields("o", "public") is None

    settings.find_one.return_value = {"owner_id": "o", "group_id": "public", "visible_fields": []}
    assert storage.get_visible_fields("o", "public") == []

    settings.find.return_value = [{"group_id": "private", "visible_fields": ["personal.name"]}]
    assert storage.list_visible_fields("o") == {"private": ["personal.name"]}

    settings.delete_one.return_value.deleted_count = 0
    assert storage.delete_visible_fields("o", "gone") is False


def test_mongo_contact_and_delegate(mongo):
    db, collections = mongo
    storage = MongoStorage(db)

    contact = Contact(id="c1", group="private", name="Alice", contact_code="abcd1234")
    storage.save_contact("o", contact)
    _, doc = collections["share_contact"].replace_one.call_args[0]
    assert doc["owner_id"] == "o"

    delegate = Delegate(owner_id="o", delegate_id="rep",
                        field_permissions={"personal.title": PermissionLevel.READONLY})
    storage.save_delegate(delegate)
    _, doc = collections["delegate"].replace_one.call_args[0]
    assert doc["field_permissions"] == {"personal.title": "readonly"}
    assert doc["created_at"] == delegate.created_at

    collections["delegate"].find_one.return_value = dict(doc, _id="x")
    found = storage.find_delegate("rep")
    assert found.field_permissions["personal.title"] is PermissionLevel.READONLY


def test_record_document_shape():
    doc = ProfileRecord().to_document()
    assert "ai_agent_visible" not in doc
    assert set(doc) == {
        "personal", "contact", "social_messaging", "social_channels", "profile",
        "portfolio_categories", "portfolio", "custom_labels",
    }


def test_mongo_delegate_ids_are_unique(mongo):
    db, collections = mongo
    MongoStorage(db)
    collections["delegate"].create_index.assert_called_once_with("delegate_id", unique=True)
