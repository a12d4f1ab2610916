"""Process-wide cache of the authenticated portal cookies."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

import structlog

LOGGER = structlog.get_logger(__name__)

COOKIE_TTL_SECONDS = 20 * 60 * 60


class CookieJar(Protocol):
    """The cookie half of a Playwright ``BrowserContext``."""

    async def cookies(self) -> list[dict[str, Any]]: ...

    async def add_cookies(self, cookies: Sequence[dict[str, Any]]) -> None: ...


@dataclass(frozen=True)
class SessionCacheEntry:
    cookies: tuple[dict[str, Any], ...]
    captured_at: float


class SessionCache:
    """
    Time-boxed cookie store shared by every pipeline in the process.

    Concurrent tasks may read and overwrite the entry without coordination; the last
    ``save`` wins and a cleared entry only forces the next task through a fresh login.
    Entries are replaced wholesale, never mutated.
    """

    def __init__(self, *, ttl_seconds: float = COOKIE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entry: Optional[SessionCacheEntry] = None

    @property
    def entry(self) -> Optional[SessionCacheEntry]:
        return self._entry

    def is_fresh(self) -> bool:
        entry = self._entry
        if entry is None or not entry.cookies:
            return False
        return self._clock() - entry.captured_at < self._ttl

    def clear(self) -> None:
        self._entry = None

    async def apply(self, jar: CookieJar) -> bool:
        """Install cached cookies into ``jar``; any failure drops the cache."""
        entry = self._entry
        if entry is None or not self.is_fresh():
            return False
        try:
            await jar.add_cookies([dict(cookie) for cookie in entry.cookies])
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("session_cache.apply_failed", error=str(exc))
            self.clear()
            return False
        LOGGER.info("session_cache.applied", count=len(entry.cookies))
        return True

    async def save(self, jar: CookieJar) -> bool:
        """Replace the cache with the cookies currently held by ``jar``."""
        try:
            cookies = await jar.cookies()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("session_cache.read_failed", error=str(exc))
            return False
        if not cookies:
            return False
        self._entry = SessionCacheEntry(
            cookies=tuple(dict(cookie) for cookie in cookies),
            captured_at=self._clock(),
        )
        LOGGER.info("session_cache.saved", count=len(cookies))
        return True
