"""
Tests for the Session permission store
Login/logout/restore lifecycle, access checks and sidebar derivation.
"""
import asyncio
import json
import logging
import sqlite3

import pytest

from config import DEFAULT_AVATARS, DEFAULT_LANDING_PATH, LOGIN_PATH, STORAGE_PAGES_KEY, STORAGE_USER_KEY
from pages import PageRegistry, single
from session import MemoryStorage, Session, SessionContextError, SessionState


def logged_in(make_session, username, password):
    session = make_session()
    asyncio.run(session.restore_session())
    assert asyncio.run(session.login(username, password))
    return session


def test_new_session_is_loading(make_session):
    session = make_session()
    assert session.state is SessionState.UNINITIALIZED
    assert session.loading
    assert not session.has_page_access("dashboard")


def test_restore_without_records_is_anonymous(make_session):
    session = make_session()
    assert asyncio.run(session.restore_session()) is SessionState.ANONYMOUS
    assert not session.loading
    assert session.identity is None


def test_login_persists_both_records(make_session, storage, navigations):
    session = logged_in(make_session, "admin", "admin123")

    assert session.state is SessionState.AUTHENTICATED
    assert session.identity.display_name == "Admin User"
    assert session.identity.avatar_url == "https://example.org/admin.png"
    assert json.loads(storage.get(STORAGE_USER_KEY))["id"] == "1"
    assert storage.get(STORAGE_PAGES_KEY) == "all"
    assert navigations == [DEFAULT_LANDING_PATH]


@pytest.mark.parametrize("username,password", [
    ("admin", "wrong"),
    ("Admin", "admin123"),
    ("nobody", "admin123"),
    ("twin", "twin123"),
])
def test_invalid_credentials_return_false(make_session, storage, navigations, username, password):
    session = make_session()
    asyncio.run(session.restore_session())

    assert asyncio.run(session.login(username, password)) is False
    assert session.state is SessionState.ANONYMOUS
    assert storage.data == {}
    assert navigations == []


def test_backend_failure_is_invalid_credentials(make_session, caplog):
    def broken_lookup(username, password):
        raise ConnectionError("backend unreachable")

    session = make_session(user_lookup=broken_lookup)
    with caplog.at_level(logging.ERROR, logger="session"):
        assert asyncio.run(session.login("admin", "admin123")) is False
    assert session.state is SessionState.ANONYMOUS
    assert not session.loading
    assert "User lookup failed" in caplog.text


def test_async_lookup(make_session):
    async def lookup(username, password):
        return [{"id": 9, "name": "Async", "role": "lab", "pages": '["i2"]'}]

    session = make_session(user_lookup=lookup)
    assert asyncio.run(session.login("anyone", "secret"))
    assert session.has_page_access("i2")


def test_missing_optional_fields_get_defaults(make_session):
    session = logged_in(make_session, "blank", "blank123")
    assert session.identity.role == "user"
    assert session.identity.avatar_url == DEFAULT_AVATARS["user"]
    assert not session.has_page_access("dashboard")
    assert session.accessible_sidebar_items() == ()


def test_login_without_lookup_fails_fast(storage):
    with pytest.raises(SessionContextError):
        asyncio.run(Session(storage).login("admin", "admin123"))


def test_explicit_grant(make_session):
    session = logged_in(make_session, "nurse", "nurse123")
    assert session.has_page_access("i1")
    assert not session.has_page_access("i2")
    assert not session.has_page_access("dashboard")


def test_group_keeps_only_allowed_children(make_session):
    session = logged_in(make_session, "nurse", "nurse123")

    sidebar = session.accessible_sidebar_items()
    assert [entry.page.key for entry in sidebar] == ["g1"]
    assert [child.key for child in sidebar[0].accessible_children] == ["i1"]


def test_singles_come_before_groups(make_session):
    session = logged_in(make_session, "admin", "admin123")

    sidebar = session.accessible_sidebar_items()
    assert [entry.page.key for entry in sidebar] == ["dashboard", "pms", "g1", "masters"]
    assert [child.key for child in sidebar[2].accessible_children] == ["i1", "i2"]
    assert sidebar[0].accessible_children == ()


def test_group_with_no_allowed_children_is_hidden(make_session):
    session = logged_in(make_session, "legacy", "legacy123")

    assert [entry.page.key for entry in session.accessible_sidebar_items()] == ["dashboard", "g1"]
    assert [page.key for page in session.accessible_group_children("g1")] == ["i2"]
    assert session.accessible_group_children("masters") == ()
    assert session.accessible_group_children("unknown") == ()


def test_derived_views_are_cached_until_identity_changes(make_session):
    session = logged_in(make_session, "admin", "admin123")
    first = session.accessible_sidebar_items()
    assert session.accessible_sidebar_items() is first

    asyncio.run(session.login("nurse", "nurse123"))
    second = session.accessible_sidebar_items()
    assert second is not first
    assert [entry.page.key for entry in second] == ["g1"]
    assert session.identity.display_name == "Nina Nurse"


def test_logout_clears_everything(make_session, storage, navigations):
    session = logged_in(make_session, "admin", "admin123")

    session.logout()

    assert session.state is SessionState.ANONYMOUS
    assert not session.has_page_access("dashboard")
    assert session.accessible_sidebar_items() == ()
    assert storage.get(STORAGE_USER_KEY) is None
    assert storage.get(STORAGE_PAGES_KEY) is None
    assert navigations[-1] == LOGIN_PATH


def test_logout_is_idempotent(make_session, navigations):
    session = make_session()
    asyncio.run(session.restore_session())
    session.logout()
    session.logout()
    assert session.state is SessionState.ANONYMOUS
    assert navigations == [LOGIN_PATH, LOGIN_PATH]


def test_reload_restores_same_grant(make_session):
    session = logged_in(make_session, "legacy", "legacy123")

    reloaded = make_session()
    assert asyncio.run(reloaded.restore_session()) is SessionState.AUTHENTICATED
    assert reloaded.identity == session.identity
    assert reloaded.authorized_pages == session.authorized_pages
    assert reloaded.authorized_pages.keys == {"dashboard", "i2"}


def test_all_grant_covers_pages_added_later(make_session, registry):
    logged_in(make_session, "admin", "admin123")

    extended = PageRegistry(list(registry.all_pages()) + [single("p_new", "New Page", "/admin/new")])
    reloaded = make_session(registry=extended)
    asyncio.run(reloaded.restore_session())

    assert reloaded.has_page_access("p_new")
    assert "p_new" in [entry.page.key for entry in reloaded.accessible_sidebar_items()]
    assert "p_new" in reloaded.accessible_page_keys()


@pytest.mark.parametrize("records", [
    {STORAGE_USER_KEY: "{not json", STORAGE_PAGES_KEY: "all"},
    {STORAGE_USER_KEY: json.dumps({"name": "No Id"}), STORAGE_PAGES_KEY: "all"},
    {STORAGE_USER_KEY: json.dumps(["a", "list"]), STORAGE_PAGES_KEY: "all"},
    {STORAGE_USER_KEY: json.dumps({"id": "1", "name": "Admin"})},
    {STORAGE_PAGES_KEY: '["dashboard"]'},
])
def test_corrupt_or_partial_records_are_purged(make_session, records):
    storage = MemoryStorage(records)
    session = make_session(storage=storage)

    assert asyncio.run(session.restore_session()) is SessionState.ANONYMOUS
    assert not session.loading
    assert storage.data == {}


class FailingStorage(MemoryStorage):
    """MemoryStorage whose reads, writes or removals fail on demand"""

    def __init__(self, initial=None, fail_get=False, fail_set_after=None, fail_remove=False):
        super().__init__(initial)
        self.fail_get = fail_get
        self.fail_set_after = fail_set_after
        self.fail_remove = fail_remove
        self.sets = 0

    def get(self, key):
        if self.fail_get:
            raise sqlite3.OperationalError("database is locked")
        return super().get(key)

    def set(self, key, value):
        if self.fail_set_after is not None and self.sets >= self.fail_set_after:
            raise sqlite3.OperationalError("disk I/O error")
        self.sets += 1
        super().set(key, value)

    def remove(self, key):
        if self.fail_remove:
            raise sqlite3.OperationalError("database is locked")
        super().remove(key)


def test_deeply_nested_identity_record_is_purged(make_session):
    storage = MemoryStorage({STORAGE_USER_KEY: "[" * 100000, STORAGE_PAGES_KEY: "all"})
    session = make_session(storage=storage)

    assert asyncio.run(session.restore_session()) is SessionState.ANONYMOUS
    assert storage.data == {}


def test_deeply_nested_pages_on_user_row_grant_nothing(make_session):
    def lookup(username, password):
        return [{"id": 11, "name": "Nested", "role": "user", "pages": "[" * 100000}]

    session = make_session(user_lookup=lookup)
    assert asyncio.run(session.login("nested", "pw")) is True
    assert not session.has_page_access("dashboard")
    assert session.accessible_sidebar_items() == ()


def test_unreadable_storage_restores_anonymous(make_session, caplog):
    storage = FailingStorage({STORAGE_USER_KEY: json.dumps({"id": "1"}), STORAGE_PAGES_KEY: "all"}, fail_get=True)
    session = make_session(storage=storage)

    with caplog.at_level(logging.ERROR, logger="session"):
        assert asyncio.run(session.restore_session()) is SessionState.ANONYMOUS
    assert not session.loading
    assert session.identity is None
    assert storage.data == {}
    assert "Could not read session records" in caplog.text


def test_failed_write_leaves_no_half_written_session(make_session, navigations):
    storage = FailingStorage(fail_set_after=1)
    session = make_session(storage=storage)
    asyncio.run(session.restore_session())

    assert asyncio.run(session.login("admin", "admin123")) is False
    assert session.state is SessionState.ANONYMOUS
    assert session.identity is None
    assert not session.loading
    assert storage.data == {}
    assert navigations == []


def test_logout_survives_storage_failure(make_session, navigations):
    session = logged_in(make_session, "admin", "admin123")
    session.storage.remove = FailingStorage(fail_remove=True).remove

    session.logout()
    assert session.identity is None
    assert session.state is SessionState.ANONYMOUS
    assert navigations[-1] == LOGIN_PATH


def test_blocking_calls_go_through_run_blocking(storage):
    offloaded = []

    async def run_blocking(fn, *args):
        offloaded.append(fn.__name__)
        return fn(*args)

    def find_users(username, password):
        return [{"id": 1, "name": "Admin", "role": "admin", "pages": "all"}]

    session = Session(storage, user_lookup=find_users, run_blocking=run_blocking)
    asyncio.run(session.restore_session())
    assert asyncio.run(session.login("admin", "admin123"))

    assert offloaded == ["_read_records", "_purge_storage", "find_users", "_persist"]
    assert session.has_page_access("dashboard")
