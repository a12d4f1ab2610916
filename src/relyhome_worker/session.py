"""Session expiry detection and recovery shared by the accept and scrape pipelines."""

from __future__ import annotations

import structlog
from playwright.async_api import Page

from .config import Settings
from .login import LoginStateMachine
from .session_cache import SessionCache

LOGGER = structlog.get_logger(__name__)

MIN_AUTHENTICATED_TEXT_LENGTH = 40

EXPIRED_PHRASES = (
    "login",
    "sign in",
    "session expired",
    "please log in",
    "authentication required",
)


def looks_expired(page_text: str) -> bool:
    """
    Crude check for a logged-out page.

    Near-empty bodies count as logged out. Otherwise any mention of a login phrase does,
    which also flags authenticated pages that merely link to "login".
    """
    text = (page_text or "").strip().lower()
    if len(text) < MIN_AUTHENTICATED_TEXT_LENGTH:
        return True
    return any(phrase in text for phrase in EXPIRED_PHRASES)


async def relogin(
    page: Page,
    settings: Settings,
    cache: SessionCache,
    username: str,
    password: str,
) -> None:
    """Run a full login on ``page`` and refresh the shared cookie cache."""
    machine = LoginStateMachine(page, settings)
    await machine.run(username, password)
    await cache.save(page.context)
    LOGGER.info("session.recovered", url=page.url)
