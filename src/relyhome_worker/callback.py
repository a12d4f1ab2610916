"""Outbound delivery of job results."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from .models import JobResult

LOGGER = structlog.get_logger(__name__)

CALLBACK_TIMEOUT_SECONDS = 15.0


async def send_callback(callback_url: Optional[str], result: JobResult) -> bool:
    """POST ``result`` to the caller once; delivery problems are logged, not raised."""
    if not callback_url:
        LOGGER.warning("callback.missing_url", job_id=result.job_id)
        return False

    LOGGER.info("callback.send.start", url=callback_url, job_id=result.job_id, success=result.success)
    try:
        async with httpx.AsyncClient(timeout=CALLBACK_TIMEOUT_SECONDS) as client:
            response = await client.post(callback_url, json=result.model_dump(mode="json"))
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        LOGGER.error("callback.send.failed", url=callback_url, job_id=result.job_id, error=str(exc))
        return False

    LOGGER.info("callback.send.complete", job_id=result.job_id, status_code=response.status_code)
    return response.is_success
