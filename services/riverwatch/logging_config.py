"""
Structured logging for the RiverWatch API server.

structlog events and plain stdlib records share one processor chain and are
rendered by a single stdout handler: JSON lines in production, a console
renderer in development. Credential-bearing keys are masked before
rendering so provider tokens never reach log output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

REDACTED = "[redacted]"

SECRET_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "id_token",
        "token",
        "client_secret",
        "code",
        "authorization",
    }
)

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "sqlalchemy.engine")


def add_service_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = "riverwatch-api"
    return event_dict


def _mask(key: Any, value: Any) -> Any:
    return REDACTED if value and str(key).lower() in SECRET_KEYS else value


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values of credential-bearing keys, including one level of nesting.

    Provider error payloads are logged as dicts, so their keys are checked
    too.
    """
    for key, value in event_dict.items():
        if isinstance(value, dict):
            event_dict[key] = {k: _mask(k, v) for k, v in value.items()}
        else:
            event_dict[key] = _mask(key, value)
    return event_dict


def level_first(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Put level and timestamp at the front of JSON lines."""
    head = {k: event_dict.pop(k) for k in ("level", "timestamp") if k in event_dict}
    return {**head, **event_dict}


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_service_name,
        redact_secrets,
    ]


def _render_chain(json_logs: bool) -> list[Processor]:
    if json_logs:
        return [
            level_first,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(json_logs: bool = True, log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one stdout handler."""
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_render_chain(json_logs),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
