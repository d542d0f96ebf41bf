"""Structured logging configuration for deferred-result.

Uses structlog for structured logging.

Architecture:
    This module configures BOTH structlog and stdlib logging to emit
    consistent output (JSON or console). It uses ProcessorFormatter
    to route stdlib log records through structlog's processor chain,
    so code using logging.getLogger(__name__) produces the same output
    format as code using structlog.get_logger().

Cell activity happens on whichever thread got there first: a producer,
the coordinator's timer, or the thread registering the handler. Every
record therefore carries ``thread_name``, and contained failures carry
the ``hook`` that failed and the ``cell`` it failed on.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.stdlib import ProcessorFormatter

# Values for the ``hook`` key on contained-failure records
HOOK_HANDLER = "handler"
HOOK_TIMEOUT = "timeout"
HOOK_ERROR = "error"
HOOK_COMPLETION = "completion"


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove internal structlog fields from output.

    ProcessorFormatter ALWAYS adds _record and _from_structlog when processing
    log records. These are internal bookkeeping and should not appear in output.
    """
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        CallsiteParameterAdder([CallsiteParameter.THREAD_NAME]),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Caching off so tests can reconfigure
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)


def get_logger(name: str, **bindings: Any) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).
        **bindings: Context carried on every record from this logger.

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name, **bindings)
    return logger


def hook_logger(logger: structlog.stdlib.BoundLogger, hook: str, cell: object) -> structlog.stdlib.BoundLogger:
    """Bind the failing hook and the cell it ran for.

    Args:
        logger: Module logger to derive from.
        hook: One of HOOK_HANDLER, HOOK_TIMEOUT, HOOK_ERROR, HOOK_COMPLETION.
        cell: The cell; its repr is bound, never the cell itself.
    """
    return logger.bind(hook=hook, cell=repr(cell))
