"""structlog configuration shared by the CLI and the MCP server."""

import logging
import os
import sys

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Route structured logs to stderr so stdout stays machine-readable.

    Level comes from ``PROOFLINE_LOG_LEVEL`` (default warning); set
    ``PROOFLINE_LOG_FORMAT=json`` for JSON lines.
    """
    level_name = (level or os.environ.get("PROOFLINE_LOG_LEVEL", "warning")).lower()
    if json_output is None:
        json_output = os.environ.get("PROOFLINE_LOG_FORMAT", "").lower() == "json"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS.get(level_name, logging.WARNING)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
