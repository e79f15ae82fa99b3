"""
Normalization of the `pages` grant stored on user records.

User records carry their page grant in whatever shape it was written with:
the literal "all", a JSON array string, a legacy comma separated string or an
already decoded list. `parse_authorized_pages` turns any of them into one of
two canonical forms, decided once at the boundary.
"""
import json
import logging
from typing import FrozenSet, Iterable, List

from pages import PageRegistry

logger = logging.getLogger(__name__)

ALL_PAGES_TOKEN = "all"


class AuthorizedPages:
    """Base for the canonical page grant"""

    is_all = False

    def allows(self, page_key: str) -> bool:
        raise NotImplementedError

    def resolve(self, registry: PageRegistry) -> List[str]:
        """Concrete page keys granted against `registry`, in registry order"""
        raise NotImplementedError

    def is_empty(self) -> bool:
        raise NotImplementedError


class AllPages(AuthorizedPages):
    """Grant over every navigable page of the live registry"""

    is_all = True

    def allows(self, page_key: str) -> bool:
        return True

    def resolve(self, registry: PageRegistry) -> List[str]:
        return registry.navigable_keys()

    def is_empty(self) -> bool:
        return False

    def __eq__(self, other):
        return isinstance(other, AllPages)

    def __hash__(self):
        return hash(ALL_PAGES_TOKEN)

    def __repr__(self):
        return "AllPages()"


class ExplicitPages(AuthorizedPages):
    def __init__(self, keys: Iterable[str] = ()):
        self.keys: FrozenSet[str] = frozenset(keys)

    def allows(self, page_key: str) -> bool:
        return page_key in self.keys

    def resolve(self, registry: PageRegistry) -> List[str]:
        return [key for key in registry.navigable_keys() if key in self.keys]

    def is_empty(self) -> bool:
        return not self.keys

    def __len__(self):
        return len(self.keys)

    def __eq__(self, other):
        return isinstance(other, ExplicitPages) and other.keys == self.keys

    def __hash__(self):
        return hash(self.keys)

    def __repr__(self):
        return f"ExplicitPages({sorted(self.keys)!r})"


ALL_PAGES = AllPages()
NO_PAGES = ExplicitPages()


def _from_sequence(values) -> AuthorizedPages:
    # Page keys are strings; nested or numeric JSON values are not keys
    keys = [value.strip() for value in values if isinstance(value, str) and value.strip()]
    if ALL_PAGES_TOKEN in keys:
        return ALL_PAGES
    return ExplicitPages(keys)


def _split_commas(raw: str) -> AuthorizedPages:
    return _from_sequence(piece for piece in raw.split(","))


def parse_authorized_pages(raw) -> AuthorizedPages:
    """Convert a raw `pages` value into AllPages or ExplicitPages. Never raises."""
    if raw is None:
        return NO_PAGES

    if isinstance(raw, AuthorizedPages):
        return raw

    if isinstance(raw, (list, tuple, set, frozenset)):
        return _from_sequence(raw)

    if not isinstance(raw, str):
        logger.warning(f"Unsupported pages value of type {type(raw).__name__}, granting nothing")
        return NO_PAGES

    text = raw.strip()
    if not text:
        return NO_PAGES
    if text == ALL_PAGES_TOKEN:
        return ALL_PAGES

    try:
        decoded = json.loads(text)
    except RecursionError:
        logger.warning("Pages value nests too deeply to decode, granting nothing")
        return NO_PAGES
    except ValueError:
        # Records written before pages were JSON encoded
        return _split_commas(text)

    if decoded is None:
        return NO_PAGES
    if isinstance(decoded, list):
        return _from_sequence(decoded)
    if isinstance(decoded, str) and decoded != text:
        return parse_authorized_pages(decoded)

    logger.warning(f"Pages value {text!r} is not a list, falling back to comma split")
    return _split_commas(text)


def encode_authorized_pages(pages: AuthorizedPages) -> str:
    """Storage form: "all" for the sentinel, otherwise a sorted JSON array"""
    if pages.is_all:
        return ALL_PAGES_TOKEN
    return json.dumps(sorted(pages.keys))
