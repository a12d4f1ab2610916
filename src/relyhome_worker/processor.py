"""Accept pipeline: pick a slot on a job acceptance page and report the outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import structlog
from playwright.async_api import Page

from .browser import (
    PageFactory,
    capture_screenshot,
    navigate,
    open_page,
    pause,
    read_body_text,
    wait_for_navigation_or_delay,
)
from .callback import send_callback
from .config import Settings
from .errors import NoCredentialsConfigured, SubmitButtonNotFound
from .models import JobRequest, JobResult, Slot
from .selectors import (
    ACCEPT_BUTTON_WORDS,
    ACCEPT_SUBMIT,
    BUTTON_CANDIDATES,
    click,
    css_escape,
    probe,
    probe_by_text,
)
from .session import looks_expired, relogin
from .session_cache import SessionCache
from .slots import discover_slots, parse_slot_label, select_best_slot

LOGGER = structlog.get_logger(__name__)

CONFIRMATION_WORDS = ("confirmed", "accepted", "scheduled", "success", "thank you")

CallbackSender = Callable[[Optional[str], JobResult], Awaitable[bool]]


@dataclass
class JobRun:
    """Mutable state of one run, kept so failures can still report what was seen."""

    job: JobRequest
    page: Optional[Page] = None
    slots: List[Slot] = field(default_factory=list)

    @property
    def slot_labels(self) -> List[str]:
        return [slot.label for slot in self.slots]


def slot_selector(slot: Slot) -> str:
    if slot.element_id:
        return f'input[id="{css_escape(slot.element_id)}"]'
    return (
        f'input[type="radio"][name="{css_escape(slot.group_name)}"]'
        f'[value="{css_escape(slot.value)}"]'
    )


def is_confirmation(page_text: str) -> bool:
    lower = (page_text or "").lower()
    return any(word in lower for word in CONFIRMATION_WORDS)


class JobProcessor:
    """Runs accept jobs, one isolated browser per job, always ending in one callback."""

    def __init__(
        self,
        settings: Settings,
        cache: SessionCache,
        *,
        page_factory: Optional[PageFactory] = None,
        callback: Optional[CallbackSender] = None,
    ):
        self._settings = settings
        self._cache = cache
        self._page_factory = page_factory or open_page
        self._callback = callback or send_callback

    async def process(self, job: JobRequest) -> JobResult:
        """Run ``job`` to completion and deliver exactly one result to its callback URL."""
        LOGGER.info("job.start", job_id=job.job_id, task_id=job.task_id, url=job.accept_url)
        run = JobRun(job=job)
        result: Optional[JobResult] = None
        try:
            async with self._page_factory(self._settings) as page:
                run.page = page
                try:
                    result = await self._accept(run)
                except Exception as exc:  # noqa: BLE001
                    LOGGER.exception("job.failed", job_id=job.job_id, error=str(exc))
                    result = self._failure(run, exc, await capture_screenshot(page))
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("job.browser_error", job_id=job.job_id, error=str(exc))
            if result is None:
                result = self._failure(run, exc, None)
        finally:
            if result is None:
                result = self._failure(run, RuntimeError("Job processing interrupted"), None)
            await self._callback(job.callback_url, result)
        LOGGER.info("job.complete", job_id=job.job_id, success=result.success)
        return result

    async def _accept(self, run: JobRun) -> JobResult:
        job = run.job
        page = run.page
        settings = self._settings

        await self._cache.apply(page.context)
        await navigate(
            page,
            job.accept_url,
            timeout_ms=settings.navigation_timeout_ms,
            settle_ms=settings.page_settle_ms,
        )
        await self._ensure_session(page, job)

        run.slots = discover_slots(await page.content())
        best = select_best_slot(run.slots, job.preferred_days, job.preferred_slots)
        LOGGER.info("job.slot_selected", job_id=job.job_id, label=best.label, available=len(run.slots))

        await self._choose(page, best)
        await self._submit(page)

        await wait_for_navigation_or_delay(
            page,
            timeout_ms=settings.submit_navigation_timeout_ms,
            max_delay_ms=settings.submit_wait_ms,
        )
        screenshot = await capture_screenshot(page)
        confirmed = is_confirmation(await read_body_text(page))
        LOGGER.info("job.submitted", job_id=job.job_id, confirmed=confirmed)

        parsed = parse_slot_label(best.label)
        return JobResult(
            job_id=job.job_id,
            task_id=job.task_id,
            success=True,
            selected_slot=parsed.time_range or best.value,
            selected_date=parsed.date,
            selected_day=parsed.day_of_week,
            confirmation_message="Job accepted" if confirmed else "Submitted",
            screenshot_base64=screenshot,
            available_slots=run.slot_labels,
            secret=job.secret,
        )

    async def _ensure_session(self, page: Page, job: JobRequest) -> None:
        if not looks_expired(await read_body_text(page)):
            return
        LOGGER.info("job.session_expired", job_id=job.job_id)
        credentials = self._settings.default_credentials()
        if credentials is None:
            raise NoCredentialsConfigured("Session expired and no credentials configured")
        await relogin(page, self._settings, self._cache, *credentials)
        await navigate(
            page,
            job.accept_url,
            timeout_ms=self._settings.navigation_timeout_ms,
            settle_ms=self._settings.page_settle_ms,
        )

    async def _choose(self, page: Page, slot: Slot) -> None:
        radio = await page.query_selector(slot_selector(slot))
        if radio:
            await click(radio)
        else:
            LOGGER.warning("job.slot_input_missing", label=slot.label)
        await pause(self._settings.pre_submit_pause_ms)

    async def _submit(self, page: Page) -> None:
        button = await probe(page, ACCEPT_SUBMIT)
        if not button:
            button = await probe_by_text(page, BUTTON_CANDIDATES, ACCEPT_BUTTON_WORDS)
        if not button:
            raise SubmitButtonNotFound("Could not find submit button")
        await click(button)

    @staticmethod
    def _failure(run: JobRun, exc: BaseException, screenshot: Optional[str]) -> JobResult:
        return JobResult(
            job_id=run.job.job_id,
            task_id=run.job.task_id,
            success=False,
            screenshot_base64=screenshot,
            available_slots=run.slot_labels,
            error=str(exc) or exc.__class__.__name__,
            secret=run.job.secret,
        )
