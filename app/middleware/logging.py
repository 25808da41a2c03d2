"""structlog configuration and the per-request logging middleware.

Every request gets a ``request_id`` (taken from ``X-Request-ID`` when the
client sends one) and, for tenant-scoped API paths, a ``tenant_id``; both are
bound to structlog contextvars so service-level events carry them too.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import LogFormat, Settings, get_settings

REQUEST_ID_HEADER = "x-request-id"

# /api/v1/{growth|analytics}/{tenant_id}/...
_TENANT_SEGMENT = 3
_QUIET_PATHS = frozenset({"/health"})

_configured = False


def tenant_from_path(path: str) -> str | None:
	segments = [segment for segment in path.split("/") if segment]
	if len(segments) <= _TENANT_SEGMENT or segments[0] != "api":
		return None
	try:
		return str(uuid.UUID(segments[_TENANT_SEGMENT]))
	except ValueError:
		return None


def _renderer(log_format: LogFormat) -> Any:
	if log_format == LogFormat.console:
		return structlog.dev.ConsoleRenderer()
	return structlog.processors.JSONRenderer()


def configure_structured_logging(settings: Settings | None = None) -> None:
	"""Set up stdlib logging and structlog; later calls are no-ops."""
	global _configured
	if _configured:
		return

	settings = settings or get_settings()
	level = logging.getLevelName(settings.log_level.upper())
	if not isinstance(level, int):
		level = logging.INFO

	logging.basicConfig(level=level, format="%(message)s")
	structlog.configure(
		processors=[
			structlog.contextvars.merge_contextvars,
			structlog.processors.add_log_level,
			structlog.processors.TimeStamper(fmt="iso", utc=True),
			structlog.processors.format_exc_info,
			_renderer(settings.log_format),
		],
		wrapper_class=structlog.make_filtering_bound_logger(level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Bind request context and log one ``http_request`` event per response."""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
		request.state.request_id = request_id

		structlog.contextvars.clear_contextvars()
		context: dict[str, str] = {"request_id": request_id}
		tenant_id = tenant_from_path(request.url.path)
		if tenant_id is not None:
			context["tenant_id"] = tenant_id
		structlog.contextvars.bind_contextvars(**context)

		logger = structlog.get_logger("aquagrowth.request")
		started = time.perf_counter()
		try:
			response = await call_next(request)
		except Exception as exc:
			logger.exception(
				"http_request_failed",
				method=request.method,
				path=request.url.path,
				duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
				error=str(exc),
			)
			raise

		response.headers[REQUEST_ID_HEADER] = request_id

		status_code = response.status_code
		if status_code >= 500:
			log = logger.error
		elif status_code >= 400:
			log = logger.warning
		elif request.url.path in _QUIET_PATHS:
			log = logger.debug
		else:
			log = logger.info
		log(
			"http_request",
			method=request.method,
			path=request.url.path,
			status_code=status_code,
			duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
		)
		return response
