"""Scrape pipeline for the available-jobs listing."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin, urlparse

import structlog
from bs4 import BeautifulSoup
from playwright.async_api import Page

from .browser import PageFactory, navigate, open_page, read_body_text
from .config import Settings
from .errors import MissingUrl, SessionExpiredNoCredentials
from .models import JobLink, ScrapeRequest, ScrapeResult
from .session import looks_expired, relogin
from .session_cache import SessionCache

LOGGER = structlog.get_logger(__name__)

OFFER_LINKS = 'a[href*="/jobs/accept/offer.php"], a[href*="offer.php"]'


def _row_text(anchor) -> str:
    row = anchor.find_parent("tr")
    return row.get_text(" ", strip=True) if row else ""


def on_portal_host(href: str, portal_host: str) -> bool:
    """True for the portal host itself and any of its subdomains (``www.``)."""
    host = (urlparse(href).hostname or "").lower()
    portal_host = portal_host.lower()
    return host == portal_host or host.endswith("." + portal_host)


def extract_job_links(html: str, page_url: str, portal_host: str) -> List[JobLink]:
    """
    Find the accept links on a listing page.

    Offer links are preferred; only when none exist are anchors whose text says
    "accept" and which stay on the portal host used instead.
    """
    soup = BeautifulSoup(html, "html.parser")
    links = [
        JobLink(
            href=urljoin(page_url, anchor.get("href", "")),
            text=anchor.get_text(" ", strip=True),
            row_text=_row_text(anchor),
            index=index,
        )
        for index, anchor in enumerate(soup.select(OFFER_LINKS))
    ]
    if links:
        return links

    for index, anchor in enumerate(soup.find_all("a")):
        text = anchor.get_text(" ", strip=True)
        href = urljoin(page_url, anchor.get("href", ""))
        if "accept" not in text.lower():
            continue
        if portal_host and not on_portal_host(href, portal_host):
            continue
        links.append(JobLink(href=href, text=text, row_text=_row_text(anchor), index=index))
    return links


class ScrapePipeline:
    """Loads a listing page under the shared session and returns what it shows."""

    def __init__(self, settings: Settings, cache: SessionCache, *, page_factory: Optional[PageFactory] = None):
        self._settings = settings
        self._cache = cache
        self._page_factory = page_factory or open_page

    async def scrape(self, request: ScrapeRequest) -> ScrapeResult:
        if not request.url:
            raise MissingUrl("URL required")

        async with self._page_factory(self._settings) as page:
            await self._cache.apply(page.context)
            await self._load(page, request.url)
            text, html, links = await self._extract(page)

            if looks_expired(text):
                LOGGER.info("scrape.session_expired", url=request.url)
                username, password = self._credentials(request)
                await relogin(page, self._settings, self._cache, username, password)
                await self._load(page, request.url)
                text, html, links = await self._extract(page)

        LOGGER.info("scrape.complete", url=request.url, chars=len(text), links=len(links))
        return ScrapeResult(
            raw_markdown=text,
            raw_html=html,
            job_links=links,
            scraped_at=datetime.now(timezone.utc).isoformat(),
        )

    def _credentials(self, request: ScrapeRequest) -> tuple[str, str]:
        defaults = self._settings.default_credentials() or (None, None)
        username = request.username or defaults[0]
        password = request.password or defaults[1]
        if not username or not password:
            raise SessionExpiredNoCredentials("Session expired and no credentials")
        return username, password

    async def _load(self, page: Page, url: str) -> None:
        await navigate(
            page,
            url,
            timeout_ms=self._settings.scrape_timeout_ms,
            settle_ms=self._settings.scrape_settle_ms,
        )

    async def _extract(self, page: Page) -> tuple[str, str, List[JobLink]]:
        text = await read_body_text(page)
        html = await page.content()
        return text, html, extract_job_links(html, page.url, self._settings.portal_host)
