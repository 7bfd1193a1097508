"""
Structured logging for the ingestion service.

Every line is a JSON object carrying the service name, and, while a
notification is being processed, the tenant, event id and batch position
bound with bind_context().
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "booksy_ingest"


def add_service_name(service: str) -> Processor:
    """Processor stamping `service` on every event that does not set one."""

    def processor(logger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def build_processors(service: str = SERVICE_NAME, json_output: bool = True) -> list[Processor]:
    """Processor chain ending in a JSON or console renderer."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_name(service),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer(ensure_ascii=False)]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(log_level: str = "INFO", json_output: bool = True, service: str = SERVICE_NAME) -> None:
    """
    Route structlog through stdlib logging on stdout.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines when True, colored console output otherwise
        service: Value of the `service` key on every line
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level.upper())

    structlog.configure(
        processors=build_processors(service, json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind key/value pairs to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all context bound with bind_context()."""
    structlog.contextvars.clear_contextvars()
