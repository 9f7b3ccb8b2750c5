"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- user_id: Authenticated principal (when available)
- session_id: Chat session correlation ID (one per mounted session)
- flow_id: Correlation ID for a single multi-step flow (send turn, save, delete)
- operation: Name of the core operation currently running
- timestamp: ISO8601 formatted timestamp

Usage:
    from eburon.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("something_happened", extra_field="value")
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Context variables for flow-scoped logging
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)
flow_id_var: ContextVar[str | None] = ContextVar("flow_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def add_flow_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Add flow context to all log entries.

    Injects all non-None ContextVar values into the log event dict.
    """
    user_id = user_id_var.get()
    session_id = session_id_var.get()
    flow_id = flow_id_var.get()
    operation = operation_var.get()

    if user_id:
        event_dict["user_id"] = user_id
    if session_id:
        event_dict["session_id"] = session_id
    if flow_id:
        event_dict["flow_id"] = flow_id
    if operation:
        event_dict["operation"] = operation

    return event_dict


def configure_logging(json_format: bool = True) -> None:
    """Configure structlog for the application.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
    """
    # Shared processors for both stdlib and structlog loggers
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_flow_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def set_session_context(user_id: str | None, session_id: str | None = None) -> None:
    """Bind the authenticated user and chat session to the current context.

    Args:
        user_id: The authenticated user ID.
        session_id: The chat session correlation ID (optional).
    """
    user_id_var.set(user_id)
    if session_id is not None:
        session_id_var.set(session_id)


def set_flow_id(flow_id: str | None) -> None:
    """Set flow_id for multi-step flow correlation.

    Args:
        flow_id: UUID string for the current flow.
    """
    flow_id_var.set(flow_id)


def set_operation(operation: str | None) -> None:
    """Set the name of the core operation currently running."""
    operation_var.set(operation)


def clear_flow_context() -> None:
    """Clear flow-scoped context once a flow completes."""
    flow_id_var.set(None)
    operation_var.set(None)


def clear_session_context() -> None:
    """Clear all context when a session is discarded."""
    user_id_var.set(None)
    session_id_var.set(None)
    flow_id_var.set(None)
    operation_var.set(None)
