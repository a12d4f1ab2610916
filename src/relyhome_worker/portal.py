"""Interactive login that also resolves the tokenized available-jobs URL."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup
from playwright.async_api import Page

from .browser import PageFactory, navigate, open_page, pause
from .config import Settings
from .errors import MissingCredentials, RedirectedToLogin
from .login import LoginStateMachine
from .models import LoginRequest, LoginResponse
from .session_cache import SessionCache

LOGGER = structlog.get_logger(__name__)

TOKEN_MARKERS = ("vid=", "exp=")


def has_tokens(url: Optional[str]) -> bool:
    return bool(url) and all(marker in url for marker in TOKEN_MARKERS)


def _anchors(html: str):
    soup = BeautifulSoup(html, "html.parser")
    for anchor in soup.find_all("a"):
        yield anchor.get("href") or "", anchor.get_text(" ", strip=True).lower()


def find_tokenized_portal_link(html: str, base_url: str) -> Optional[str]:
    """An "available" link that already carries the ``vid``/``exp`` tokens."""
    for href, text in _anchors(html):
        mentions_available = "available-swo" in href or "available" in href or "available" in text
        if mentions_available and has_tokens(href):
            return urljoin(base_url, href)
    return None


def find_available_jobs_link(html: str, base_url: str) -> Optional[str]:
    """A navigation link to the available-jobs page, tokenized or not."""
    for href, text in _anchors(html):
        if "available-swo" in href or ("available" in text and "job" in text):
            return urljoin(base_url, href)
    return None


def find_any_tokenized_link(html: str, base_url: str) -> Optional[str]:
    for href, _ in _anchors(html):
        if has_tokens(href):
            return urljoin(base_url, href)
    return None


class PortalLogin:
    """Logs in with caller-supplied credentials and finds the portal entry URL."""

    def __init__(self, settings: Settings, cache: SessionCache, *, page_factory: Optional[PageFactory] = None):
        self._settings = settings
        self._cache = cache
        self._page_factory = page_factory or open_page

    async def login(self, request: LoginRequest) -> LoginResponse:
        if not request.username or not request.password:
            raise MissingCredentials("Username and password required")

        async with self._page_factory(self._settings) as page:
            await LoginStateMachine(page, self._settings).run(request.username, request.password)
            await self._cache.save(page.context)
            await pause(self._settings.login_settle_ms)
            LOGGER.info("portal.logged_in", url=page.url)
            portal_url = await self._resolve_portal_url(page)

        LOGGER.info("portal.resolved", portal_url=portal_url, has_tokens=has_tokens(portal_url))
        if portal_url and "login" in portal_url:
            raise RedirectedToLogin("Redirected back to login page")

        return LoginResponse(
            portal_url=portal_url or self._settings.available_jobs_url,
            has_tokens=has_tokens(portal_url),
            refreshed_at=datetime.now(timezone.utc).isoformat(),
        )

    async def _resolve_portal_url(self, page: Page) -> Optional[str]:
        settings = self._settings
        html = await page.content()
        portal_url = find_tokenized_portal_link(html, page.url)

        if not portal_url:
            link = find_available_jobs_link(html, page.url)
            if link:
                LOGGER.info("portal.follow_link", href=link)
                await navigate(
                    page,
                    link,
                    timeout_ms=settings.navigation_timeout_ms,
                    settle_ms=settings.portal_link_settle_ms,
                )
                portal_url = page.url

        if not has_tokens(portal_url):
            await navigate(
                page,
                settings.available_jobs_url,
                timeout_ms=settings.scrape_timeout_ms,
                settle_ms=settings.scrape_settle_ms,
            )
            portal_url = page.url

        if not has_tokens(portal_url):
            portal_url = find_any_tokenized_link(await page.content(), page.url) or portal_url

        return portal_url
