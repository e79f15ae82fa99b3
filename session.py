"""
Login session and page permission store.

A Session owns at most one Identity, mirrors it into a key/value storage as
two records (identity JSON and the page grant) and answers every "may this
identity see page X" question for the rest of the application.
"""
import inspect
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from config import (
    DEFAULT_AVATARS,
    DEFAULT_LANDING_PATH,
    DEFAULT_ROLE,
    LOGIN_PATH,
    STORAGE_PAGES_KEY,
    STORAGE_USER_KEY,
)
from pages import REGISTRY, PageDescriptor, PageKind, PageRegistry
from permissions import NO_PAGES, AuthorizedPages, encode_authorized_pages, parse_authorized_pages

logger = logging.getLogger(__name__)


class SessionContextError(RuntimeError):
    """Raised when permission-aware code runs without a bound Session"""


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESTORING = "restoring"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class MemoryStorage:
    """In-process key/value storage"""

    def __init__(self, initial: Dict[str, str] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str):
        self.data[key] = value

    def remove(self, key: str):
        self.data.pop(key, None)


def default_avatar(role: str) -> str:
    return DEFAULT_AVATARS.get(role, DEFAULT_AVATARS[DEFAULT_ROLE])


@dataclass(frozen=True)
class Identity:
    id: str
    display_name: str
    role: str
    avatar_url: str
    authorized_pages: AuthorizedPages = field(default=NO_PAGES, compare=False)

    @classmethod
    def from_user_row(cls, row: dict) -> "Identity":
        role = row.get("role") or DEFAULT_ROLE
        return cls(
            id=str(row["id"]),
            display_name=row.get("name") or row.get("user_name") or "",
            role=role,
            avatar_url=row.get("profile_image") or default_avatar(role),
            authorized_pages=parse_authorized_pages(row.get("pages")),
        )

    @classmethod
    def from_record(cls, record: dict, authorized_pages: AuthorizedPages) -> "Identity":
        if not isinstance(record, dict) or not record.get("id"):
            raise ValueError("Identity record has no id")
        role = record.get("role") or DEFAULT_ROLE
        return cls(
            id=str(record["id"]),
            display_name=record.get("name") or "",
            role=role,
            avatar_url=record.get("image") or default_avatar(role),
            authorized_pages=authorized_pages,
        )

    def to_record(self) -> dict:
        return {"id": self.id, "name": self.display_name, "role": self.role, "image": self.avatar_url}


@dataclass(frozen=True)
class SidebarItem:
    page: PageDescriptor
    accessible_children: Tuple[PageDescriptor, ...] = ()


class Session:
    """
    Session lifecycle: UNINITIALIZED -> RESTORING -> AUTHENTICATED | ANONYMOUS.

    `user_lookup(username, password)` returns the matching user rows (a list
    of dicts) and may be a plain function or a coroutine function.
    `on_navigate(path)` receives the navigation requested by login/logout.
    `run_blocking(fn, *args)`, when given, is awaited to run storage and
    lookup calls off the event loop (e.g. fastapi's run_in_threadpool).
    """

    def __init__(
        self,
        storage,
        registry: PageRegistry = REGISTRY,
        user_lookup: Callable = None,
        on_navigate: Callable[[str], None] = None,
        run_blocking: Callable = None,
    ):
        self.storage = storage
        self.registry = registry
        self._user_lookup = user_lookup
        self.on_navigate = on_navigate
        self.run_blocking = run_blocking
        self.state = SessionState.UNINITIALIZED
        self.loading = True
        self._identity: Optional[Identity] = None
        self._sidebar: Optional[Tuple[SidebarItem, ...]] = None
        self._group_children: Dict[str, Tuple[PageDescriptor, ...]] = {}

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def authorized_pages(self) -> AuthorizedPages:
        if self._identity is None:
            return NO_PAGES
        return self._identity.authorized_pages

    def _set_identity(self, identity: Optional[Identity]):
        self._identity = identity
        self._sidebar = None
        self._group_children = {}
        self.state = SessionState.AUTHENTICATED if identity else SessionState.ANONYMOUS

    def _purge_storage(self):
        try:
            self.storage.remove(STORAGE_USER_KEY)
            self.storage.remove(STORAGE_PAGES_KEY)
        except Exception:
            logger.exception("Could not purge session records from storage")

    def _read_records(self) -> Tuple[Optional[str], Optional[str]]:
        return self.storage.get(STORAGE_USER_KEY), self.storage.get(STORAGE_PAGES_KEY)

    def _persist(self, identity: Identity):
        self.storage.set(STORAGE_USER_KEY, json.dumps(identity.to_record()))
        self.storage.set(STORAGE_PAGES_KEY, encode_authorized_pages(identity.authorized_pages))

    async def _io(self, fn, *args):
        if self.run_blocking is None:
            return fn(*args)
        return await self.run_blocking(fn, *args)

    def _navigate(self, path: str):
        if self.on_navigate is not None:
            self.on_navigate(path)

    async def restore_session(self) -> SessionState:
        """Rebuild the identity from storage, purging anything unreadable"""
        self.state = SessionState.RESTORING
        self.loading = True
        try:
            try:
                stored_user, stored_pages = await self._io(self._read_records)
            except Exception:
                logger.exception("Could not read session records from storage, purging")
                await self._io(self._purge_storage)
                self._set_identity(None)
                return self.state

            if stored_user is None or stored_pages is None:
                if stored_user is not None or stored_pages is not None:
                    logger.warning("Incomplete session records in storage, purging")
                await self._io(self._purge_storage)
                self._set_identity(None)
                return self.state

            try:
                identity = Identity.from_record(json.loads(stored_user), parse_authorized_pages(stored_pages))
            except (ValueError, TypeError, RecursionError) as e:
                logger.warning(f"Corrupt session records in storage, purging: {type(e).__name__}")
                await self._io(self._purge_storage)
                self._set_identity(None)
                return self.state

            self._set_identity(identity)
            return self.state
        finally:
            self.loading = False

    def _reject_login(self) -> bool:
        if self._identity is None:
            self._set_identity(None)
        return False

    async def login(self, username: str, password: str) -> bool:
        if self._user_lookup is None:
            raise SessionContextError("Session has no user lookup configured")

        self.loading = True
        try:
            try:
                if inspect.iscoroutinefunction(self._user_lookup):
                    rows = self._user_lookup(username, password)
                else:
                    rows = await self._io(self._user_lookup, username, password)
                if inspect.isawaitable(rows):
                    rows = await rows
            except Exception:
                logger.exception(f"User lookup failed for '{username}'")
                return self._reject_login()

            rows = list(rows or [])
            if len(rows) != 1:
                logger.warning(f"Login rejected for '{username}': {len(rows)} matching users")
                return self._reject_login()

            try:
                identity = Identity.from_user_row(rows[0])
            except KeyError:
                logger.warning(f"User record for '{username}' has no id")
                return self._reject_login()

            try:
                await self._io(self._persist, identity)
            except Exception:
                logger.exception(f"Could not store session for '{username}'")
                await self._io(self._purge_storage)
                self._set_identity(None)
                return False

            self._set_identity(identity)
            logger.info(f"User '{username}' logged in as {identity.role}")
        finally:
            self.loading = False

        self._navigate(DEFAULT_LANDING_PATH)
        return True

    def logout(self):
        if self._identity is not None:
            logger.info(f"User {self._identity.id} logged out")
        self._purge_storage()
        self._set_identity(None)
        self._navigate(LOGIN_PATH)

    def has_page_access(self, page_key: str) -> bool:
        pages = self.authorized_pages
        if pages.is_empty():
            return False
        return pages.allows(page_key)

    def accessible_group_children(self, group_key: str) -> Tuple[PageDescriptor, ...]:
        children = self._group_children.get(group_key)
        if children is None:
            children = tuple(page for page in self.registry.children_of(group_key) if self.has_page_access(page.key))
            self._group_children[group_key] = children
        return children

    def accessible_sidebar_items(self) -> Tuple[SidebarItem, ...]:
        if self._sidebar is None:
            singles: List[SidebarItem] = []
            groups: List[SidebarItem] = []
            for page in self.registry.all_pages():
                if page.kind is PageKind.SINGLE and self.has_page_access(page.key):
                    singles.append(SidebarItem(page))
                elif page.kind is PageKind.GROUP:
                    children = self.accessible_group_children(page.key)
                    if children:
                        groups.append(SidebarItem(page, children))
            self._sidebar = tuple(singles + groups)
        return self._sidebar

    def accessible_page_keys(self) -> List[str]:
        return self.authorized_pages.resolve(self.registry) if self.is_authenticated else []
