from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from relyhome_worker.browser import BODY_TEXT_SCRIPT
from relyhome_worker.config import Settings
from relyhome_worker.selectors import BUTTON_CANDIDATES, CLICK_SCRIPT, ELEMENT_TEXT_SCRIPT, LOGIN_FORM
from relyhome_worker.session_cache import SessionCache

LOGIN_URL = "https://relyhome.com/login"


class FakeElement:
    def __init__(self, text: str = "", on_click: Optional[Callable[[], None]] = None):
        self.text = text
        self.on_click = on_click
        self.clicks = 0
        self.typed: list[str] = []

    async def click(self, click_count: int = 1) -> None:
        pass

    async def type(self, value: str, delay: int = 0) -> None:
        self.typed.append(value)

    async def evaluate(self, script: str):
        if script == CLICK_SCRIPT:
            self.clicks += 1
            if self.on_click:
                self.on_click()
            return None
        if script == ELEMENT_TEXT_SCRIPT:
            return self.text
        raise AssertionError(f"unexpected element script {script!r}")


@dataclass
class Screen:
    text: str = ""
    html: str = "<html><body></body></html>"
    elements: dict[str, FakeElement] = field(default_factory=dict)
    buttons: list[FakeElement] = field(default_factory=list)


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self._page = page
        self.presses: list[str] = []

    async def press(self, key: str) -> None:
        self.presses.append(key)
        if key == "Enter" and self._page.on_enter:
            self._page.on_enter()


class FakeContext:
    def __init__(self, cookies: Optional[list[dict]] = None, fail_add: bool = False):
        self.jar: list[dict] = list(cookies or [])
        self.added: list[dict] = []
        self.fail_add = fail_add

    async def cookies(self) -> list[dict]:
        return list(self.jar)

    async def add_cookies(self, cookies) -> None:
        if self.fail_add:
            raise RuntimeError("cookie rejected")
        self.added.extend(cookies)
        self.jar.extend(cookies)


class FakePage:
    """Scripted stand-in for the subset of ``playwright.async_api.Page`` the worker uses."""

    def __init__(self, screens: Optional[dict[str, Screen]] = None, context: Optional[FakeContext] = None):
        self.screens = dict(screens or {})
        self.url = "about:blank"
        self.visits: list[str] = []
        self.context = context or FakeContext()
        self.keyboard = FakeKeyboard(self)
        self.on_enter: Optional[Callable[[], None]] = None
        self.goto_hooks: dict[str, Callable[[], Optional[str]]] = {}
        self.screenshot_error: Optional[Exception] = None
        self.screenshots = 0
        self.waited_for: list[tuple[str, str]] = []

    @property
    def screen(self) -> Screen:
        return self.screens.get(self.url, Screen())

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 0) -> None:
        self.visits.append(url)
        hook = self.goto_hooks.get(url)
        redirected = hook() if hook else None
        self.url = redirected or url

    async def evaluate(self, script: str, arg=None):
        if script == BODY_TEXT_SCRIPT:
            return self.screen.text
        raise AssertionError(f"unexpected page script {script!r}")

    async def content(self) -> str:
        return self.screen.html

    async def query_selector(self, selector: str):
        return self.screen.elements.get(selector)

    async def query_selector_all(self, selector: str):
        if selector == BUTTON_CANDIDATES:
            return list(self.screen.buttons)
        return []

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: int = 0):
        self.waited_for.append((selector, state))
        element = self.screen.elements.get(selector)
        if element is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return element

    async def wait_for_event(self, event: str, timeout: int = 0):
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {event}")

    async def wait_for_load_state(self, state: str = "load", timeout: int = 0) -> None:
        return None

    async def screenshot(self, full_page: bool = False) -> bytes:
        if self.screenshot_error:
            raise self.screenshot_error
        self.screenshots += 1
        return b"fake-png"

    def navigate_to(self, url: str) -> None:
        self.url = url


def login_screen(
    page: FakePage,
    after_login_url: str,
    *,
    submit: bool = True,
    on_submit: Optional[Callable[[], None]] = None,
) -> Screen:
    """A login form whose submit button moves ``page`` to ``after_login_url``."""

    def _submitted() -> None:
        page.navigate_to(after_login_url)
        if on_submit:
            on_submit()

    form = FakeElement()
    elements = {
        LOGIN_FORM: form,
        'input[name="username"]': FakeElement(),
        'input[name="password"]': FakeElement(),
        'input[type="password"]': FakeElement(),
    }
    if submit:
        elements['button[type="submit"]'] = FakeElement("Log in", on_click=_submitted)
    return Screen(text="Please log in\nUsername\nPassword", elements=elements)


def page_factory_for(page: FakePage, closed: Optional[list] = None):
    @asynccontextmanager
    async def factory(settings):
        try:
            yield page
        finally:
            if closed is not None:
                closed.append(page)

    return factory


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


FAST_TIMINGS = dict(
    navigation_timeout_ms=10,
    scrape_timeout_ms=10,
    login_form_timeout_ms=10,
    login_redirect_timeout_ms=10,
    login_redirect_wait_ms=0,
    post_login_settle_ms=0,
    login_settle_ms=0,
    page_settle_ms=0,
    scrape_settle_ms=0,
    input_pause_ms=0,
    pre_submit_pause_ms=0,
    submit_navigation_timeout_ms=10,
    submit_wait_ms=0,
    portal_link_settle_ms=0,
    keystroke_delay_ms=0,
)


def make_settings(**overrides) -> Settings:
    values = dict(
        FAST_TIMINGS,
        base_url="https://relyhome.com",
        username="worker@example.com",
        password="hunter2",
        worker_secret=None,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> SessionCache:
    return SessionCache(clock=clock)
