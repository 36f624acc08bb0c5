import json

import pytest
from sqlalchemy.exc import OperationalError

from mothercrop.defaults import DEFAULT_SITE_DATA
from mothercrop.exports import BackupImportError
from mothercrop.models import StorageRecord, db
from mothercrop.persistence import StorageAdapter
from mothercrop.store import IdGenerator, InvalidSectionUpdate, SectionUpdate, visit_count


def persisted(store):
    return StorageAdapter(store.adapter.key).load()


def test_first_run_uses_defaults_without_writing(store):
    assert store.data["users"] == DEFAULT_SITE_DATA["users"]
    assert persisted(store) is None


def test_page_visit_counted_once_per_session(store):
    session = {}
    before = store.data["trafficStats"]["HOME"]
    assert store.record_page_visit("HOME", session) is True
    assert store.record_page_visit("HOME", session) is False
    assert store.data["trafficStats"]["HOME"] == before + 1
    assert session == {"visited_HOME": True}

    assert store.record_page_visit("HOME", {}) is True
    assert store.data["trafficStats"]["HOME"] == before + 2
    assert persisted(store)["trafficStats"]["HOME"] == before + 2


def test_unknown_page_starts_at_one(store):
    assert store.record_page_visit("GALLERY") is True
    assert store.record_page_visit("GALLERY") is False
    assert store.data["trafficStats"]["GALLERY"] == 1


def test_chat_session_upsert_and_preview(store):
    messages = [
        {"role": "model", "text": "Hi there", "timestamp": "t0"},
        {"role": "user", "text": "Do you deliver?", "timestamp": "t1"},
    ]
    saved = store.upsert_chat_session("abc", messages)
    assert saved["preview"] == "Do you deliver?"
    assert store.data["chatHistory"][0]["id"] == "abc"

    empty = store.upsert_chat_session("xyz", [])
    assert empty["preview"] == "New Conversation"

    store.upsert_chat_session("abc", messages + [{"role": "model", "text": "Yes", "timestamp": "t2"}])
    ids = [item["id"] for item in store.data["chatHistory"]]
    assert ids.count("abc") == 1
    assert ids.index("xyz") < ids.index("abc")
    assert len(store.get_chat_session("abc")["messages"]) == 3


def test_chat_history_caps(store):
    long_conversation = [{"role": "user", "text": f"m{i}", "timestamp": str(i)} for i in range(60)]
    saved = store.upsert_chat_session("long", long_conversation)
    assert len(saved["messages"]) == 50
    assert saved["messages"][0]["text"] == "m10"

    for index in range(55):
        store.upsert_chat_session(f"s{index}", [])
    history = store.data["chatHistory"]
    assert len(history) == 50
    assert history[0]["id"] == "s54"


def test_soil_analysis_ids_and_cap(store):
    result = {"mode": "soil", "score": 70, "en": {"type": "Loam"}, "hi": {"type": "Loam"}}
    first = store.record_soil_analysis(result, location="North field")
    plant = store.record_soil_analysis(dict(result, mode="plant"))
    assert first["id"].startswith("soil-")
    assert first["location"] == "North field"
    assert plant["id"].startswith("plant-")
    assert store.data["soilLabHistory"][0]["id"] == plant["id"]

    for _ in range(55):
        store.record_soil_analysis(result)
    assert len(store.data["soilLabHistory"]) == 50
    ids = [record["id"] for record in store.data["soilLabHistory"]]
    assert len(set(ids)) == 50


def test_subscriber_dedup_is_exact(store):
    count = len(store.data["subscribers"])
    assert store.add_subscriber("new@farm.test") is True
    assert store.add_subscriber("new@farm.test") is False
    assert store.add_subscriber("NEW@farm.test") is True
    assert len(store.data["subscribers"]) == count + 2
    assert store.data["subscribers"][-1]["email"] == "NEW@farm.test"


def test_contact_messages_are_appended(store):
    store.add_contact_message({"name": "A", "email": "a@a.co", "subject": "s", "message": "one"})
    store.add_contact_message({"name": "A", "email": "a@a.co", "subject": "s", "message": "one"})
    tail = store.data["contactMessages"][-2:]
    assert [item["message"] for item in tail] == ["one", "one"]
    assert tail[0]["id"] != tail[1]["id"]


def test_blog_soft_delete_restore_and_purge(store):
    post = store.create_post(author="editor", title="Compost Basics")
    assert post["status"] == "draft"
    assert post["slug"] == "compost-basics"
    assert store.data["blog"][0]["id"] == post["id"]

    trashed = store.trash_post(post["id"])
    assert trashed["status"] == "trash"
    assert trashed["deletedAt"].endswith("Z")

    restored = store.restore_post(post["id"])
    assert restored["status"] == "draft"
    assert "deletedAt" not in restored

    store.trash_post(post["id"])
    store.trash_post(1)
    assert store.empty_trash() == 2
    assert store.find_post(post["id"]) is None
    assert store.empty_trash() == 0


def test_update_post_merges_seo_and_ignores_unknown_ids(store):
    updated = store.update_post(4, {"title": "Renamed", "seo": {"keywords": "soil"}})
    assert updated["title"] == "Renamed"
    assert updated["seo"]["keywords"] == "soil"
    assert updated["seo"]["metaTitle"] == ""
    assert store.update_post(999999, {"title": "Nope"}) is None
    assert store.delete_post(999999) is False
    assert store.delete_post(1) is True


def test_typed_section_update_rejects_bad_shapes(store):
    before = store.snapshot()
    with pytest.raises(InvalidSectionUpdate) as excinfo:
        store.update_section("users", [{"id": 9, "username": "x"}])
    assert "users[0]" in str(excinfo.value)
    with pytest.raises(InvalidSectionUpdate):
        SectionUpdate.build("nonsense", {})
    with pytest.raises(InvalidSectionUpdate):
        store.update_section("home", [])
    assert store.data == before
    assert persisted(store) is None


def test_apply_saves_several_sections(store):
    store.apply(
        SectionUpdate.build("contact", dict(store.data["contact"], phone="1")),
        SectionUpdate.build("testimonials", []),
    )
    saved = persisted(store)
    assert saved["contact"]["phone"] == "1"
    assert saved["testimonials"] == []


def test_replace_sections_does_not_validate(store):
    store.replace_sections({"home": "anything"})
    assert store.data["home"] == "anything"


def test_reset_all_restores_defaults_and_clears_storage(store):
    store.add_subscriber("gone@farm.test")
    assert persisted(store) is not None
    store.reset_all()
    assert store.data == store.defaults
    assert persisted(store) is None


def test_import_backup_requires_users_and_home(store):
    before = store.snapshot()
    with pytest.raises(BackupImportError):
        store.import_backup({"blog": []})
    assert store.data == before

    imported = dict(DEFAULT_SITE_DATA, subscribers=[{"id": 1, "email": "only@farm.test"}])
    store.import_backup(json.loads(json.dumps(imported)))
    assert store.data["subscribers"] == [{"id": 1, "email": "only@farm.test"}]


def test_corrupt_storage_keeps_current_state(store):
    db.session.add(StorageRecord(key=store.adapter.key, value="{not json", revision=1))
    db.session.commit()
    before = store.snapshot()
    assert store.adapter.load() is None
    assert store.load() == before


def test_persisted_data_is_merged_on_load(store):
    db.session.add(StorageRecord(key=store.adapter.key, value=json.dumps({"blog": [{"id": 3, "title": "Old One"}]}), revision=1))
    db.session.commit()
    loaded = store.load()
    assert loaded["blog"][0]["slug"] == "old-one"
    assert loaded["users"] == DEFAULT_SITE_DATA["users"]


def test_id_generator_is_monotonic_with_frozen_clock():
    ids = IdGenerator(clock=lambda: 1700000000.0)
    values = [ids.next_int() for _ in range(5)]
    assert values == sorted(set(values))
    assert values[0] == 1700000000000
    assert ids.next_tagged("soil") == f"soil-{values[-1] + 1}"


def failing_commit():
    raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


def test_failed_write_leaves_memory_and_storage_untouched(store, monkeypatch):
    store.add_subscriber("kept@farm.test")
    before = store.snapshot()
    monkeypatch.setattr(db.session, "commit", failing_commit)

    with pytest.raises(OperationalError):
        store.add_subscriber("ghost@farm.test")
    with pytest.raises(OperationalError):
        store.update_section("home", dict(before["home"], heroTitle="Never saved"))
    assert store.data == before

    monkeypatch.undo()
    store.add_contact_message({"name": "Later", "email": "l@farm.test", "message": "ok"})
    emails = [item["email"] for item in persisted(store)["subscribers"]]
    assert "ghost@farm.test" not in emails
    assert persisted(store)["home"]["heroTitle"] == before["home"]["heroTitle"]


def test_failed_visit_write_can_be_counted_again(store, monkeypatch):
    session = {}
    before = store.data["trafficStats"]["HOME"]
    monkeypatch.setattr(db.session, "commit", failing_commit)
    with pytest.raises(OperationalError):
        store.record_page_visit("HOME", session)
    assert session == {}
    assert store.data["trafficStats"]["HOME"] == before

    monkeypatch.undo()
    assert store.record_page_visit("HOME", session) is True
    assert store.data["trafficStats"]["HOME"] == before + 1


def test_visit_count_tolerates_bad_counters(store):
    assert visit_count("7") == 7
    assert visit_count("lots") == 0
    assert visit_count(None) == 0
    assert visit_count(float("inf")) == 0
    assert visit_count(True) == 0

    store.replace_sections({"trafficStats": {"HOME": "many"}})
    assert store.record_page_visit("HOME", {}) is True
    assert store.data["trafficStats"]["HOME"] == 1
