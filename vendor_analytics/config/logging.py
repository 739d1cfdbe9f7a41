"""
Logging Configuration for Vendor Analytics Core

Structured logging for the analytics guard, KPI aggregator and adapters.
Guardrail violations are filtered down to a fixed set of non-PII fields
before rendering, whatever the caller or bound context attached.
"""

import logging
import sys
from typing import Any, List, MutableMapping, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level

from vendor_analytics.analytics.guard import VIOLATION_EVENT
from vendor_analytics.config.settings import get_settings

# Fields a guardrail violation event may carry
VIOLATION_FIELDS = frozenset({
    "event",
    "metric",
    "violation_code",
    "scope",
    "store_ids",
    "effective_store_ids",
    "target_store_id",
})

# Loggers whose INFO output is query/connection chatter
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "redis")


def restrict_violation_fields(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Drop everything but the allowed fields from guardrail violation events."""
    if event_dict.get("event") != VIOLATION_EVENT:
        return event_dict

    for key in [key for key in event_dict if key not in VIOLATION_FIELDS]:
        del event_dict[key]
    return event_dict


def shared_processors() -> List[Any]:
    """Processor chain for both structlog and foreign stdlib records"""
    return [
        structlog.contextvars.merge_contextvars,
        # Before level/logger/timestamp are added so those survive
        restrict_violation_fields,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the analytics package.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    settings = get_settings()
    level = log_level or settings.monitoring.log_level
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    processors = shared_processors()
    structlog.configure(
        processors=processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=processors))

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level,
        format=settings.monitoring.log_format,
        environment=settings.app_env,
    )
