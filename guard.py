"""Route guard: decides whether a protected view renders or redirects"""
import logging
from typing import NamedTuple, Optional

from config import DEFAULT_LANDING_PATH, LOGIN_PATH

logger = logging.getLogger(__name__)


class GuardDecision(NamedTuple):
    render: bool
    redirect_to: Optional[str] = None

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(True)

    @classmethod
    def redirect(cls, target: str) -> "GuardDecision":
        return cls(False, target)


def guard(session, required_page_key: Optional[str] = None) -> GuardDecision:
    """
    Gate a protected view.

    A session that is anonymous, or still restoring, is sent to the login
    entry point. An authenticated session lacking `required_page_key` is sent
    back to the landing page.
    """
    if session.loading or session.identity is None:
        return GuardDecision.redirect(LOGIN_PATH)

    if required_page_key and not session.has_page_access(required_page_key):
        logger.warning(f"User {session.identity.id} denied page '{required_page_key}'")
        return GuardDecision.redirect(DEFAULT_LANDING_PATH)

    return GuardDecision.allow()


def login_entry(session) -> GuardDecision:
    """Authenticated sessions skip the login view"""
    if not session.loading and session.identity is not None:
        return GuardDecision.redirect(DEFAULT_LANDING_PATH)
    return GuardDecision.allow()
