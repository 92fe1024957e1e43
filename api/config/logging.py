import logging
import sys
from typing import Any

import structlog

from .settings import Settings, get_settings

# Keys whose values never reach a log line
SECRET_KEYS = frozenset(
    {
        "authorization",
        "access_token",
        "client_secret",
        "cron_secret",
        "x-cron-secret",
        "x-cron-key",
        "gateway_secret",
        "x-gateway-secret",
        "signature",
    }
)
REDACTED = "****"

# Chatty libraries that only log at our level when debugging
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "openai")


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor masking credential values, including nested headers."""
    for key, value in list(event_dict.items()):
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in SECRET_KEYS else v
                for k, v in value.items()
            }
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog for the API and the publish worker pool."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    library_level = level if level == logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    structlog.configure(
        processors=[
            # request_id / entry_id bound via contextvars
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            redact_secrets,
            (
                structlog.processors.CallsiteParameterAdder(
                    parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
                )
                if settings.debug
                else structlog.processors.CallsiteParameterAdder(parameters=[])
            ),
            (
                structlog.dev.ConsoleRenderer()
                if settings.debug
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__, **initial: Any) -> structlog.BoundLogger:
    """Get a structured logger, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    if initial:
        logger = logger.bind(**initial)
    return logger


def add_request_context(request_id: str, **context: Any) -> None:
    """Replace the per-request context carried by every log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def bind_job_context(**context: Any) -> Any:
    """Bind job identifiers for the current task; returns tokens for reset."""
    return structlog.contextvars.bind_contextvars(
        **{key: str(value) for key, value in context.items() if value is not None}
    )


def reset_job_context(tokens: Any) -> None:
    structlog.contextvars.reset_contextvars(**tokens)
