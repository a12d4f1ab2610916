"""Login state machine for the RelyHome portal."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

import structlog
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from .browser import navigate, pause, read_body_text, wait_for_navigation_or_delay
from .config import Settings
from .errors import LOGIN_ERRORS, LoginError, LoginFailureReason
from .selectors import (
    BUTTON_CANDIDATES,
    LOGIN_BUTTON_WORDS,
    LOGIN_FORM,
    LOGIN_SUBMIT,
    PASSWORD_FIELD,
    USERNAME_FIELD,
    click,
    probe,
    probe_by_text,
)

LOGGER = structlog.get_logger(__name__)

LOGIN_PATH = "/login"

ERROR_PHRASES = (
    "invalid password",
    "invalid credentials",
    "incorrect password",
    "wrong password",
    "login failed",
    "authentication failed",
    "invalid username",
    "invalid email",
    "user not found",
    "account not found",
    "bad credentials",
)

SUCCESS_URL_FRAGMENTS = ("dashboard", "available", "jobs", "home", "portal")

SUCCESS_TEXT_PHRASES = (
    "welcome",
    "dashboard",
    "available jobs",
    "logout",
    "sign out",
    "my account",
)

LONG_PAGE_THRESHOLD = 500


class LoginState(str, Enum):
    NOT_STARTED = "not_started"
    FORM_LOADED = "form_loaded"
    CREDENTIALS_ENTERED = "credentials_entered"
    SUBMITTED = "submitted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TRANSITIONS: dict[LoginState, frozenset[LoginState]] = {
    LoginState.NOT_STARTED: frozenset({LoginState.FORM_LOADED, LoginState.FAILED}),
    LoginState.FORM_LOADED: frozenset({LoginState.CREDENTIALS_ENTERED, LoginState.FAILED}),
    LoginState.CREDENTIALS_ENTERED: frozenset({LoginState.SUBMITTED, LoginState.FAILED}),
    LoginState.SUBMITTED: frozenset({LoginState.SUCCEEDED, LoginState.FAILED}),
    LoginState.SUCCEEDED: frozenset(),
    LoginState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class PageSnapshot:
    """What the page looked like after the credentials were submitted."""

    url: str
    text: str
    password_field_present: bool = False


@dataclass(frozen=True)
class LoginOutcome:
    state: LoginState
    reason: Optional[LoginFailureReason] = None


def classify_submission(snapshot: PageSnapshot) -> LoginOutcome:
    """
    Decide whether a submitted login worked.

    Explicit error text always wins. After that any single success signal is enough,
    and the only hard failure is staying on the login URL with a password box still shown.
    """
    url = snapshot.url or ""
    text = snapshot.text or ""
    lower = text.lower()

    if any(phrase in lower for phrase in ERROR_PHRASES):
        return LoginOutcome(LoginState.FAILED, LoginFailureReason.INVALID_CREDENTIALS)

    on_login_url = LOGIN_PATH in url
    # Keywords are matched outside the host; "relyhome.com" itself contains "home".
    parts = urlsplit(url)
    location = f"{parts.path}?{parts.query}#{parts.fragment}".lower()
    signals = (
        not on_login_url,
        any(fragment in location for fragment in SUCCESS_URL_FRAGMENTS),
        any(phrase in lower for phrase in SUCCESS_TEXT_PHRASES),
        len(text) > LONG_PAGE_THRESHOLD and "password" not in lower,
    )
    if any(signals):
        return LoginOutcome(LoginState.SUCCEEDED)

    if on_login_url and snapshot.password_field_present:
        return LoginOutcome(LoginState.FAILED, LoginFailureReason.STILL_ON_LOGIN_PAGE)

    return LoginOutcome(LoginState.SUCCEEDED)


class LoginStateMachine:
    """Drives one login attempt on a page and records the state it ends in."""

    def __init__(self, page: Page, settings: Settings):
        self._page = page
        self._settings = settings
        self.state = LoginState.NOT_STARTED
        self.failure: Optional[LoginFailureReason] = None

    def _advance(self, target: LoginState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal login transition {self.state.value} -> {target.value}")
        LOGGER.debug("login.transition", source=self.state.value, target=target.value)
        self.state = target

    def _fail(self, reason: LoginFailureReason, message: str) -> LoginError:
        self._advance(LoginState.FAILED)
        self.failure = reason
        LOGGER.warning("login.failed", reason=reason.value, url=self._page.url)
        return LOGIN_ERRORS[reason](message)

    async def run(self, username: str, password: str) -> LoginState:
        """Log in, returning ``SUCCEEDED`` or raising the matching ``LoginError``."""
        LOGGER.info("login.start", url=self._settings.login_url)
        await self._load_form()
        await self._enter_credentials(username, password)
        await self._submit()
        return await self._evaluate()

    async def _load_form(self) -> None:
        settings = self._settings
        await navigate(
            self._page,
            settings.login_url,
            timeout_ms=settings.navigation_timeout_ms,
            settle_ms=settings.login_settle_ms,
        )
        try:
            await self._page.wait_for_selector(
                LOGIN_FORM,
                state="attached",
                timeout=settings.login_form_timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            raise self._fail(LoginFailureReason.FORM_NOT_FOUND, "Login form did not appear") from exc
        self._advance(LoginState.FORM_LOADED)

    async def _enter_credentials(self, username: str, password: str) -> None:
        username_field = await probe(self._page, USERNAME_FIELD)
        password_field = await probe(self._page, PASSWORD_FIELD)
        if not username_field or not password_field:
            raise self._fail(LoginFailureReason.FIELDS_NOT_FOUND, "Could not find login form fields")

        await self._type_into(username_field, username)
        await self._type_into(password_field, password)
        await pause(self._settings.pre_submit_pause_ms)
        self._advance(LoginState.CREDENTIALS_ENTERED)

    async def _type_into(self, field, value: str) -> None:
        # Select-all then delete any autofilled text.
        await field.click(click_count=3)
        await pause(self._settings.input_pause_ms)
        await self._page.keyboard.press("Backspace")
        await field.type(value, delay=self._settings.keystroke_delay_ms)

    async def _submit(self) -> None:
        button = await probe(self._page, LOGIN_SUBMIT)
        if not button:
            button = await probe_by_text(self._page, BUTTON_CANDIDATES, LOGIN_BUTTON_WORDS)
        if button:
            await click(button)
        else:
            LOGGER.info("login.submit_enter_fallback")
            await self._page.keyboard.press("Enter")

        settings = self._settings
        await wait_for_navigation_or_delay(
            self._page,
            timeout_ms=settings.login_redirect_timeout_ms,
            max_delay_ms=settings.login_redirect_wait_ms,
        )
        await pause(settings.post_login_settle_ms)
        self._advance(LoginState.SUBMITTED)

    async def _evaluate(self) -> LoginState:
        text = await read_body_text(self._page)
        url = self._page.url
        LOGGER.info("login.submitted", url=url, text_length=len(text))

        password_present = False
        if LOGIN_PATH in url:
            password_present = bool(await self._page.query_selector('input[type="password"]'))

        outcome = classify_submission(PageSnapshot(url=url, text=text, password_field_present=password_present))
        if outcome.reason is LoginFailureReason.INVALID_CREDENTIALS:
            raise self._fail(outcome.reason, "Login failed: Invalid credentials")
        if outcome.reason is LoginFailureReason.STILL_ON_LOGIN_PAGE:
            raise self._fail(outcome.reason, "Login appears to have failed - still on login page")

        self._advance(LoginState.SUCCEEDED)
        LOGGER.info("login.complete", url=url)
        return self.state

