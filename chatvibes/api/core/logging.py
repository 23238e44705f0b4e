"""Logging configuration"""

import logging
import time
import uuid
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from chatvibes.api.core.config import Settings

_SENSITIVE_KEYS = ("password", "token", "secret", "key", "authorization")

request_logger = logging.getLogger("chatvibes.api.requests")


def setup_logging(settings: Settings) -> None:
    """Configure application logging with Rich handler"""

    level = getattr(logging, settings.log_level, logging.INFO)

    console = Console(
        force_terminal=True,
        width=120,
    )

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )

    rich_handler.setFormatter(
        logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
    )

    # force=True: uvicorn configures the root logger first
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%Y-%m-%d %H:%M:%S]",
        handlers=[rich_handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging: {settings.log_level} | Env: {settings.environment}")


def redact_sensitive(data: Any) -> Any:
    """Return a copy of *data* with credential-looking values masked.

    Keys are matched case-insensitively by substring, so ``apiKey`` and
    ``refresh_token`` are both redacted. Nested dicts and lists are walked.
    """
    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            if any(s in str(key).lower() for s in _SENSITIVE_KEYS):
                redacted[key] = "[REDACTED]"
            else:
                redacted[key] = redact_sensitive(value)
        return redacted
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Attach a correlation id to each request and log its outcome."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = (
            request.headers.get("x-correlation-id")
            or request.headers.get("x-request-id")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id
        request_logger.debug(
            f"Incoming request {request.method} {request.url.path} [{correlation_id}] "
            f"ua={request.headers.get('user-agent', '-')}"
        )

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms:.0f}ms) [{correlation_id}]",
        )
        response.headers["X-Correlation-ID"] = correlation_id
        return response
