"""Playwright helpers: isolated browser launch, soft waits and page reads."""

from __future__ import annotations

import asyncio
import base64
from contextlib import asynccontextmanager, suppress
from typing import AsyncContextManager, AsyncIterator, Callable, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError, async_playwright

from .config import Settings

LOGGER = structlog.get_logger(__name__)

BODY_TEXT_SCRIPT = "() => (document.body && document.body.innerText) || ''"

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
VIEWPORT = {"width": 1280, "height": 800}

PageFactory = Callable[[Settings], AsyncContextManager[Page]]


@asynccontextmanager
async def open_page(settings: Settings) -> AsyncIterator[Page]:
    """Launch a dedicated Chromium instance and yield a fresh page; always closes it."""
    async with async_playwright() as playwright:
        LOGGER.info("browser.launch", headless=settings.headless)
        browser = await playwright.chromium.launch(headless=settings.headless, args=CHROMIUM_ARGS)
        try:
            context = await browser.new_context(viewport=VIEWPORT)
            yield await context.new_page()
        finally:
            await browser.close()
            LOGGER.info("browser.closed")


async def pause(milliseconds: int) -> None:
    if milliseconds > 0:
        await asyncio.sleep(milliseconds / 1000)


async def read_body_text(page: Page) -> str:
    return str(await page.evaluate(BODY_TEXT_SCRIPT) or "")


async def navigate(page: Page, url: str, *, timeout_ms: int, settle_ms: int = 0) -> None:
    """Go to ``url`` waiting for the network to go quiet, then give scripts time to render."""
    LOGGER.info("browser.navigate", url=url)
    await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
    await pause(settle_ms)


async def _navigation_settled(page: Page, timeout_ms: int) -> None:
    with suppress(PlaywrightTimeoutError):
        await page.wait_for_event("framenavigated", timeout=timeout_ms)
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)


async def wait_for_navigation_or_delay(page: Page, *, timeout_ms: int, max_delay_ms: int) -> bool:
    """
    Race a navigation against a fixed delay and return whether navigation won.

    The portal sometimes redirects client-side without firing a navigation event, so
    losing the race is expected and never an error.
    """
    navigation = asyncio.ensure_future(_navigation_settled(page, timeout_ms))
    try:
        done, _ = await asyncio.wait({navigation}, timeout=max(max_delay_ms, 0) / 1000)
    finally:
        if not navigation.done():
            navigation.cancel()
        with suppress(asyncio.CancelledError, PlaywrightError):
            await navigation
    navigated = navigation in done and not navigation.cancelled()
    LOGGER.debug("browser.navigation_race", navigated=navigated)
    return navigated


async def capture_screenshot(page: Optional[Page]) -> Optional[str]:
    """Full-page screenshot as base64, or ``None`` when the page cannot be captured."""
    if page is None:
        return None
    try:
        raw = await page.screenshot(full_page=True)
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("browser.screenshot_failed", error=str(exc))
        return None
    return base64.b64encode(raw).decode("ascii")
