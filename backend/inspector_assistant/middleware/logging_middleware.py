"""
Logging Middleware

Tags every request with a short request_id and logs its start, end and
failures. The inspector_id is bound later by the webhook pipeline once the
sender is identified, and cleared here when the request ends.
"""

import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..logging_config import request_id_var, inspector_id_var, get_logger, log_action

logger = get_logger(__name__)

# Health probes run every few seconds
QUIET_PATHS = frozenset({"/health", "/health/db", "/favicon.ico"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request-scoped logging context plus start/end timing logs."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id_var.set(uuid.uuid4().hex[:8])
        started = time.monotonic()
        method, path = request.method, request.url.path
        quiet = path in QUIET_PATHS

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        if not quiet:
            log_action(logger, "info", "request_start", f"{method} {path}", method=method, path=path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{method} {path} failed: {e}",
                extra={
                    "action": "request_error",
                    "extra_data": {"method": method, "path": path, "duration_ms": elapsed_ms()},
                },
                exc_info=True
            )
            raise
        finally:
            inspector_id_var.set(None)

        if not quiet:
            log_action(
                logger, "info", "request_end", f"{method} {path} -> {response.status_code}",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=elapsed_ms(),
            )
        request_id_var.set(None)
        return response
