import json
import threading
import time

from mothercrop.persistence import StorageChangeHub
from mothercrop.sync import SyncListener


def shared_pair(make_app, hub=None):
    first = make_app(db_name="shared.db", storage_hub=hub)
    second = make_app(db_name="shared.db", storage_hub=hub)
    return first, second


def test_write_in_one_tab_is_pushed_to_the_other(make_app):
    hub = StorageChangeHub()
    tab_a, tab_b = shared_pair(make_app, hub)
    store_a = tab_a.extensions["site_store"]
    store_b = tab_b.extensions["site_store"]

    with tab_a.app_context():
        store_a.add_subscriber("x@y.co")
    assert store_b.data["subscribers"][-1]["email"] == "x@y.co"

    with tab_b.app_context():
        store_b.add_contact_message({"name": "B", "email": "b@b.co", "message": "hi"})
    assert store_a.data["contactMessages"][-1]["message"] == "hi"
    assert store_a.data["subscribers"][-1]["email"] == "x@y.co"


def test_writer_does_not_observe_its_own_event(make_app):
    hub = StorageChangeHub()
    app = make_app(storage_hub=hub)
    store = app.extensions["site_store"]
    adopted = []
    original_adopt = store.adopt
    store.adopt = lambda raw: adopted.append(raw) or original_adopt(raw)

    with app.app_context():
        store.add_subscriber("me@farm.test")
    assert adopted == []


def test_handle_change_filters_key_and_bad_values(store):
    listener = SyncListener(store)
    before = store.snapshot()
    assert listener.handle_change("other_key", json.dumps({"home": {}})) is False
    assert listener.handle_change(store.adapter.key, None) is False
    assert listener.handle_change(store.adapter.key, "") is False
    assert listener.handle_change(store.adapter.key, "{broken") is False
    assert store.data == before

    incoming = dict(before, subscribers=[{"id": 1, "email": "solo@farm.test"}])
    assert listener.handle_change(store.adapter.key, json.dumps(incoming)) is True
    assert store.data["subscribers"] == [{"id": 1, "email": "solo@farm.test"}]


def test_stopped_listener_ignores_changes(make_app):
    hub = StorageChangeHub()
    tab_a, tab_b = shared_pair(make_app, hub)
    tab_b.extensions["site_sync"].stop()
    before = tab_b.extensions["site_store"].snapshot()

    with tab_a.app_context():
        tab_a.extensions["site_store"].add_subscriber("quiet@farm.test")
    assert tab_b.extensions["site_store"].data == before


def test_poll_pulls_writes_from_another_process(make_app):
    proc_a, proc_b = shared_pair(make_app)
    store_b = proc_b.extensions["site_store"]
    listener_b = proc_b.extensions["site_sync"]

    with proc_a.app_context():
        proc_a.extensions["site_store"].add_subscriber("poll@farm.test")
    assert store_b.data["subscribers"][-1]["email"] != "poll@farm.test"

    with proc_b.app_context():
        assert listener_b.poll() is True
        assert store_b.data["subscribers"][-1]["email"] == "poll@farm.test"
        assert listener_b.poll() is False


def test_own_writes_are_not_pending(store):
    store.add_subscriber("self@farm.test")
    assert store.adapter.pending_external_revision() is None


def test_requests_poll_before_serving(make_app):
    proc_a, proc_b = shared_pair(make_app)
    with proc_a.app_context():
        proc_a.extensions["site_store"].update_section(
            "contact", dict(proc_a.extensions["site_store"].data["contact"], phone="+1 000")
        )

    response = proc_b.test_client().get("/api/site")
    assert response.status_code == 200
    assert response.get_json()["contact"]["phone"] == "+1 000"


def test_reset_elsewhere_leaves_state_until_next_write(make_app):
    proc_a, proc_b = shared_pair(make_app)
    store_a = proc_a.extensions["site_store"]
    store_b = proc_b.extensions["site_store"]
    with proc_a.app_context():
        store_a.add_subscriber("kept@farm.test")
    with proc_b.app_context():
        proc_b.extensions["site_sync"].poll()
    with proc_a.app_context():
        store_a.reset_all()
    with proc_b.app_context():
        assert proc_b.extensions["site_sync"].poll() is False
    assert store_b.data["subscribers"][-1]["email"] == "kept@farm.test"


def test_last_whole_document_write_wins_across_tabs(make_app):
    hub = StorageChangeHub()
    tab_a, tab_b = shared_pair(make_app, hub)
    store_a = tab_a.extensions["site_store"]
    store_b = tab_b.extensions["site_store"]
    # Tab A misses B's event, as a tab does while its own write is in flight.
    tab_a.extensions["site_sync"].stop()

    with tab_b.app_context():
        store_b.update_section("about", dict(store_b.data["about"], heroTitle="Written by B"))
    assert store_b.data["about"]["heroTitle"] == "Written by B"

    with tab_a.app_context():
        store_a.add_subscriber("a@farm.test")
    assert store_b.data["about"]["heroTitle"] != "Written by B"
    assert store_b.data["about"] == store_a.data["about"]
    assert store_b.data["subscribers"][-1]["email"] == "a@farm.test"


def test_concurrent_writers_on_one_hub_do_not_block_each_other(make_app, monkeypatch):
    hub = StorageChangeHub()
    tab_a, tab_b = shared_pair(make_app, hub)
    errors = []

    for app in (tab_a, tab_b):
        adapter = app.extensions["site_store"].adapter

        def slow_write(document, _write=adapter.write):
            time.sleep(0.2)
            return _write(document)

        monkeypatch.setattr(adapter, "write", slow_write)

    def subscribe(app, email):
        try:
            with app.app_context():
                app.extensions["site_store"].add_subscriber(email)
        except Exception as exc:  # surfaced through the assertion below
            errors.append(exc)

    workers = [
        threading.Thread(target=subscribe, args=(tab_a, "a@farm.test")),
        threading.Thread(target=subscribe, args=(tab_b, "b@farm.test")),
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=10)
    assert [worker.is_alive() for worker in workers] == [False, False]
    assert errors == []
