import mongomock
import pytest

import database

# Swap in an in-memory database before any route module binds `db`
database.db = mongomock.MongoClient()["distracto_test"]

from fastapi.testclient import TestClient  # noqa: E402

from main import app  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    database.ensure_indexes()
    yield
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(client):
    """Register a user and return its id, token, auth headers and profile."""
    def _make(email="alice@example.com", display_name="Alice", password="secret123"):
        resp = client.post("/api/auth/register", json={
            "email": email,
            "password": password,
            "displayName": display_name,
        })
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return {
            "id": body["user"]["_id"],
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
            "user": body["user"],
        }
    return _make


@pytest.fixture
def alice(make_user):
    return make_user()


@pytest.fixture
def bob(make_user):
    return make_user(email="bob@example.com", display_name="Bob")
