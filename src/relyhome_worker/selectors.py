"""Ordered selector chains and the first-match probing discipline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

import structlog
from playwright.async_api import Error as PlaywrightError

LOGGER = structlog.get_logger(__name__)

CLICK_SCRIPT = "el => el.click()"
ELEMENT_TEXT_SCRIPT = "el => (el.value || el.textContent || el.innerText || '')"


class DomQuery(Protocol):
    """The part of a Playwright ``Page`` the prober needs."""

    async def query_selector(self, selector: str) -> Any: ...

    async def query_selector_all(self, selector: str) -> list[Any]: ...


@dataclass(frozen=True)
class SelectorChain:
    """Named, prioritised list of selectors; earlier entries win."""

    name: str
    selectors: tuple[str, ...]


LOGIN_FORM = (
    'input[name="username"], input[name="email"], input[type="email"], '
    'input[type="text"], #username, #email'
)

USERNAME_FIELD = SelectorChain(
    "username field",
    (
        'input[name="username"]',
        'input[name="email"]',
        'input[type="email"]',
        'input[type="text"]:not([type="password"])',
        "#username",
        "#email",
    ),
)

PASSWORD_FIELD = SelectorChain(
    "password field",
    ('input[name="password"]', 'input[type="password"]', "#password"),
)

LOGIN_SUBMIT = SelectorChain(
    "login submit",
    (
        'button[type="submit"]',
        'input[type="submit"]',
        "button.login-btn",
        "button.btn-login",
        "#login-button",
        "#loginBtn",
    ),
)

ACCEPT_SUBMIT = SelectorChain(
    "accept submit",
    (
        'input[name="accept_button"]',
        'input[type="submit"][value*="Accept"]',
        'button[type="submit"]',
        'input[type="submit"]',
    ),
)

SLOT_GROUP_NAMES = ("appttime", "appointment", "time_slot")
SLOT_INPUTS = ", ".join(f'input[type="radio"][name="{name}"]' for name in SLOT_GROUP_NAMES)

BUTTON_CANDIDATES = 'button, input[type="submit"]'
LOGIN_BUTTON_WORDS = ("login", "sign in", "submit", "log in")
ACCEPT_BUTTON_WORDS = ("accept", "submit")


async def probe(dom: DomQuery, chain: SelectorChain) -> Optional[Any]:
    """Return the first element matched by ``chain`` in list order, or ``None``."""
    for selector in chain.selectors:
        try:
            handle = await dom.query_selector(selector)
        except PlaywrightError as exc:
            LOGGER.debug("probe.selector_error", chain=chain.name, selector=selector, error=str(exc))
            continue
        if handle:
            LOGGER.info("probe.matched", chain=chain.name, selector=selector)
            return handle
    LOGGER.info("probe.no_match", chain=chain.name)
    return None


async def probe_by_text(dom: DomQuery, candidates: str, words: Iterable[str]) -> Optional[Any]:
    """Return the first candidate element whose value/text mentions any of ``words``."""
    wanted = tuple(word.lower() for word in words)
    for handle in await dom.query_selector_all(candidates):
        text = str(await handle.evaluate(ELEMENT_TEXT_SCRIPT) or "").lower()
        if any(word in text for word in wanted):
            LOGGER.info("probe.matched_text", text=text.strip()[:60])
            return handle
    return None


async def click(handle: Any) -> None:
    """Dispatch a DOM click, bypassing Playwright's actionability checks."""
    await handle.evaluate(CLICK_SCRIPT)


def css_escape(value: Optional[str]) -> str:
    """Escape a value for use inside a double-quoted CSS attribute selector."""
    return (
        str(value or "")
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\a ")
        .replace("\r", "\\d ")
    )
