"""FastAPI application exposing the accept, scrape and login endpoints."""

from __future__ import annotations

import hmac
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .errors import AutomationFailure, Unauthorized
from .models import (
    AcceptResponse,
    HealthResponse,
    JobRequest,
    LoginRequest,
    LoginResponse,
    ScrapeRequest,
    ScrapeResult,
)
from .portal import PortalLogin
from .processor import JobProcessor
from .scraper import ScrapePipeline
from .session_cache import SessionCache

LOGGER = structlog.get_logger(__name__)


def check_secret(settings: Settings, supplied: Optional[str]) -> None:
    """Reject the request when a worker secret is configured and ``supplied`` differs."""
    if settings.worker_secret is None:
        return
    expected = settings.worker_secret.get_secret_value()
    if not expected:
        return
    if not hmac.compare_digest(expected.encode(), (supplied or "").encode()):
        raise Unauthorized("Invalid secret")


def create_app(
    settings: Optional[Settings] = None,
    *,
    cache: Optional[SessionCache] = None,
    processor: Optional[JobProcessor] = None,
    scraper: Optional[ScrapePipeline] = None,
    portal: Optional[PortalLogin] = None,
) -> FastAPI:
    """Build the application; one settings object and one cookie cache per process."""
    settings = settings or Settings()
    cache = cache or SessionCache()

    app = FastAPI(title="RelyHome Worker", version=__version__)
    app.state.settings = settings
    app.state.session_cache = cache
    app.state.processor = processor or JobProcessor(settings, cache)
    app.state.scraper = scraper or ScrapePipeline(settings, cache)
    app.state.portal = portal or PortalLogin(settings, cache)

    @app.exception_handler(AutomationFailure)
    async def automation_failure_handler(request: Request, exc: AutomationFailure) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())

    @app.post("/accept", response_model=AcceptResponse)
    async def accept(job: JobRequest, background_tasks: BackgroundTasks) -> AcceptResponse:
        """Acknowledge immediately; the result arrives later via the job's callback URL."""
        LOGGER.info("api.accept", job_id=job.job_id, task_id=job.task_id, url=job.accept_url)
        check_secret(settings, job.secret)
        background_tasks.add_task(app.state.processor.process, job)
        return AcceptResponse(job_id=job.job_id, task_id=job.task_id)

    @app.post("/scrape", response_model=ScrapeResult)
    async def scrape(request: ScrapeRequest) -> ScrapeResult:
        LOGGER.info("api.scrape", url=request.url)
        check_secret(settings, request.secret)
        try:
            return await app.state.scraper.scrape(request)
        except AutomationFailure:
            raise
        except Exception as exc:
            LOGGER.exception("api.scrape_failed", url=request.url, error=str(exc))
            raise AutomationFailure(str(exc)) from exc

    @app.post("/login", response_model=LoginResponse)
    async def login(request: LoginRequest) -> LoginResponse:
        LOGGER.info("api.login", username=request.username)
        check_secret(settings, request.secret)
        try:
            return await app.state.portal.login(request)
        except AutomationFailure:
            raise
        except Exception as exc:
            LOGGER.exception("api.login_failed", error=str(exc))
            raise AutomationFailure(str(exc)) from exc

    return app


app = create_app()
