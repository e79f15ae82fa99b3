import pytest
from fastapi.testclient import TestClient

import config
from pages import PageRegistry, group, item, single
from session import MemoryStorage, Session

USERS = [
    {"id": 1, "user_name": "admin", "password": "admin123", "name": "Admin User", "role": "admin",
     "profile_image": "https://example.org/admin.png", "pages": "all"},
    {"id": 2, "user_name": "nurse", "password": "nurse123", "name": "Nina Nurse", "role": "nurse",
     "profile_image": None, "pages": '["i1"]'},
    {"id": 3, "user_name": "legacy", "password": "legacy123", "name": "Old Record", "role": "rmo",
     "profile_image": None, "pages": "dashboard, i2"},
    {"id": 4, "user_name": "blank", "password": "blank123", "name": "Blank", "role": None,
     "profile_image": None, "pages": None},
    {"id": 5, "user_name": "twin", "password": "twin123", "name": "Twin A", "role": "user", "pages": "all"},
    {"id": 6, "user_name": "twin", "password": "twin123", "name": "Twin B", "role": "user", "pages": "all"},
]


def lookup_users(username, password):
    return [dict(row) for row in USERS if row["user_name"] == username and row["password"] == password]


@pytest.fixture
def registry():
    return PageRegistry([
        single("dashboard", "Dashboard", "/admin/dashboard"),
        single("pms", "PMS", "/admin/pms"),
        group("g1", "Group One"),
        item("i1", "Item One", "/admin/g1/i1", "g1"),
        item("i2", "Item Two", "/admin/g1/i2", "g1"),
        group("masters", "Masters"),
        item("masters-manage-users", "Manage Users", "/admin/masters/manage-users", "masters"),
        group("empty", "Empty Group"),
    ])


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def navigations():
    return []


@pytest.fixture
def make_session(registry, storage, navigations):
    """Build Sessions sharing one storage, as successive page loads would"""
    def factory(registry=registry, storage=storage, user_lookup=lookup_users):
        return Session(storage, registry=registry, user_lookup=user_lookup, on_navigate=navigations.append)
    return factory


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATABASE_PATH", str(tmp_path / "hospital-test.db"))
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login_headers(client):
    """Bearer headers for a fresh login"""
    def login(username, password):
        response = client.post("/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return login
