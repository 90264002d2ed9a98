"""
Structured JSON logging for the marketplace API.

Every record is emitted as one JSON object carrying the service identity,
request trace context and, for failures, the stack trace.
"""

import json
import logging
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from marketplace.auth_local import decode_access_token
from marketplace.core_settings import get_settings

SERVICE_NAME = "marketplace-api"

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter compatible with ELK / CloudWatch style log pipelines"""

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        settings = get_settings()
        self.service_name = service_name
        self.environment = settings.ENVIRONMENT
        self.version = settings.SERVICE_VERSION

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "@timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "version": self.version,
        }

        trace_context = _trace_context()
        if trace_context:
            log_obj["trace"] = trace_context

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, 'extra_fields'):
            log_obj["custom"] = record.extra_fields

        return json.dumps(log_obj, default=str)


def _trace_context() -> Optional[Dict[str, Any]]:
    context = {}
    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id
    user_id = user_id_var.get()
    if user_id:
        context["user_id"] = user_id
    return context or None


class SecurityFilter(logging.Filter):
    """Redact credentials and Stripe keys from log messages"""

    REDACTED = "***REDACTED***"
    PATTERNS = [
        (re.compile(r"(?i)\b(password|token|api_key|secret|authorization)(\s*[=:]\s*)\S+"), r"\1\2" + REDACTED),
        (re.compile(r"\b(sk|pk|rk)_(test|live)_[0-9A-Za-z]+"), REDACTED),
        (re.compile(r"\bwhsec_[0-9A-Za-z]+"), REDACTED),
        (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._-]+"), "Bearer " + REDACTED),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern, replacement in self.PATTERNS:
            redacted = pattern.sub(replacement, redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(service_name: str = SERVICE_NAME, level: Optional[str] = None) -> None:
    """
    Install the JSON handler on the root logger.

    Args:
        service_name: Value of the "service" field on every record
        level: Log level; defaults to LOG_LEVEL from settings
    """
    level = (level or get_settings().LOG_LEVEL).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter(service_name))
    console_handler.addFilter(SecurityFilter())
    root_logger.addHandler(console_handler)

    # Configure third-party loggers
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('stripe').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={'extra_fields': {'service': service_name, 'level': level}},
    )


class LoggerAdapter(logging.LoggerAdapter):
    """Adds the current request id and user id to the record's extra fields"""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        fields = dict(extra.get('extra_fields', {}))
        trace = _trace_context()
        if trace:
            fields.update(trace)
        if fields:
            extra['extra_fields'] = fields
        kwargs['extra'] = extra
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(request_id: Optional[str] = None, user_id: Optional[str] = None) -> None:
    if request_id:
        request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def _token_subject(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        return None
    claims = decode_access_token(auth_header.split(" ", 1)[1])
    return claims.get("sub") if claims else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with its duration and echoes X-Request-ID back.
    Health probes are logged at DEBUG to keep the log readable.
    """

    QUIET_PREFIXES = ("/health", "/metrics")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        user_id_var.set(None)
        # Set here so the values are copied into the threadpool running sync routes
        set_request_context(request_id=request_id, user_id=_token_subject(request))

        logger = get_logger(__name__)
        quiet = request.url.path.startswith(self.QUIET_PREFIXES)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'extra_fields': {
                    'method': request.method,
                    'path': request.url.path,
                    'duration_ms': round(duration * 1000, 2),
                }},
            )
            raise

        duration = time.time() - start_time
        logger.log(
            logging.DEBUG if quiet else logging.INFO,
            f"Request completed: {request.method} {request.url.path}",
            extra={'extra_fields': {
                'method': request.method,
                'path': request.url.path,
                'status_code': response.status_code,
                'duration_ms': round(duration * 1000, 2),
                'client_host': request.client.host if request.client else None,
            }},
        )
        response.headers['X-Request-ID'] = request_id
        return response
