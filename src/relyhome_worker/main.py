"""Entry point for the RelyHome worker."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

import structlog
import uvicorn

from .config import Settings


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Serve the RelyHome job acceptance worker.")
    parser.add_argument("--host", help="Interface to bind (defaults to HOST or 0.0.0.0).")
    parser.add_argument("--port", type=int, help="Port to bind (defaults to PORT or 3000).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level.",
    )
    return parser.parse_args(argv)


def cli(argv: Optional[list[str]] = None) -> None:
    """Console script entrypoint."""
    args = parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    try:
        settings = Settings()
    except Exception as exc:  # pragma: no cover - startup validation
        LOGGER.exception("settings.error", error=str(exc))
        raise SystemExit(2) from exc

    from .api import create_app

    host = args.host or settings.host
    port = args.port or settings.port
    LOGGER.info(
        "worker.start",
        host=host,
        port=port,
        credentials_configured=settings.default_credentials() is not None,
        secret_configured=settings.worker_secret is not None,
    )
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


if __name__ == "__main__":  # pragma: no cover
    cli()
