"""structlog setup for the billing engine.

Every record carries the request's correlation id and the service name. Money
values logged as Decimal are rendered as plain strings ("120.00") so JSON
records stay queryable. Third-party stdlib loggers (uvicorn, SQLAlchemy,
aiosqlite) are routed through the same formatter.
"""

import logging
import logging.config
from decimal import Decimal

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "billing-engine"

# Noisy below WARNING
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncpg")


def add_correlation_id(logger, method, event_dict):
    """Attach the X-Request-ID of the request being handled, if any."""
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def add_service_name(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def render_decimals(logger, method, event_dict):
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def _stdlib_config(log_level: str, renderer) -> dict:
    pre_chain = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": pre_chain,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["default"], "level": log_level},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    }


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog and bridge stdlib logging into it.

    Must run before any module calls structlog.get_logger(), since the
    processor chain is cached on first use.

    Args:
        log_level: Root log level ("DEBUG", "INFO", "WARNING", "ERROR")
        json_logs: JSON lines when True, colored console output when False
    """
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    logging.config.dictConfig(_stdlib_config(log_level, renderer))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_correlation_id,
            add_service_name,
            render_decimals,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
