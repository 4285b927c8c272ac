"""
Structured logging setup for tempcluster.
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(
    log_level: str = "WARNING",
    use_colors: bool = False,
    json_output: bool = False,
) -> None:
    """Configure structured logging through the stdlib logging module."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.WARNING),
        force=True,
    )

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=use_colors)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_cluster_logging(verbose: bool, use_colors: bool, json_output: bool = False) -> None:
    """Log progress only when verbose, errors always."""
    setup_logging(
        log_level="DEBUG" if verbose else "WARNING",
        use_colors=use_colors,
        json_output=json_output,
    )
