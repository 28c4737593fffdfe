"""
Structured logging configuration.
Supports JSON format for ELK Stack integration.
"""

import logging
import sys
from typing import Optional

import structlog
from pythonjsonlogger import jsonlogger

from src.config import settings
from src.utils.context import get_actor_id, get_correlation_id


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level from settings
    """
    level = log_level or settings.log_level

    if settings.log_format == "json":
        configure_json_logging(level)
    else:
        configure_console_logging(level)


def add_context_to_log(logger, method_name, event_dict):
    """
    Structlog processor adding correlation_id and actor_id
    to every log entry.
    """
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id

    actor_id = get_actor_id()
    if actor_id:
        event_dict["actor_id"] = actor_id

    return event_dict


class ContextJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping service name and request context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = record.created
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = settings.app_name

        correlation_id = get_correlation_id()
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        actor_id = get_actor_id()
        if actor_id:
            log_record["actor_id"] = actor_id


def configure_json_logging(level: str) -> None:
    """Configure JSON logging for production."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ContextJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    )

    logging.root.handlers = [handler]
    logging.root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_context_to_log,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_console_logging(level: str) -> None:
    """Configure human-readable logging for development."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_context_to_log,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
