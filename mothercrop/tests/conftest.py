import uuid

import pytest

try:
    from mothercrop import create_app
except ModuleNotFoundError:  # pragma: no cover - fallback for direct mothercrop/ cwd test runs
    from __init__ import create_app


def build_test_app(tmp_path, overrides=None, storage_hub=None, db_name=None):
    db_path = tmp_path / (db_name or f"site_test_{uuid.uuid4().hex[:8]}.db")
    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SYNC_POLL_SECONDS": 0,
        "GEMINI_API_KEY": "",
        "SENTRY_DSN": "",
        "LOG_JSON": False,
    }
    if overrides:
        config.update(overrides)
    return create_app(config, storage_hub=storage_hub)


class FakeAIClient:
    """Stands in for GeminiClient: records prompts and replays canned text."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, prompt, image=None, mime_type=None, json_mode=False, system_instruction=None):
        self.calls.append(
            {
                "prompt": prompt,
                "image": image,
                "mime_type": mime_type,
                "json_mode": json_mode,
                "system_instruction": system_instruction,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture()
def make_app(tmp_path):
    def factory(overrides=None, storage_hub=None, db_name=None):
        return build_test_app(tmp_path, overrides, storage_hub=storage_hub, db_name=db_name)
    return factory


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    with app.app_context():
        yield app.extensions["site_store"]


@pytest.fixture()
def fake_ai():
    return FakeAIClient


@pytest.fixture()
def csrf_headers():
    def fetch(client):
        token = client.get("/api/csrf-token").get_json()["csrfToken"]
        assert token
        return {"X-CSRF-Token": token}
    return fetch


@pytest.fixture()
def login_as(csrf_headers):
    def login(client, username="admin", password=None):
        response = client.post(
            "/admin/login",
            json={"username": username, "password": password or username},
            headers=csrf_headers(client),
        )
        assert response.status_code == 200, response.get_json()
        return {"X-CSRF-Token": response.get_json()["csrfToken"]}
    return login
