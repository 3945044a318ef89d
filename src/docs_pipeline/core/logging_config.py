"""Logging setup shared by the CLI and tests."""

import sys
import logging

import structlog


def configure_logging(verbose: bool = False) -> None:
    """Configure stdlib logging and route structlog run events through it.

    Stdout is left to command output, so everything logs to stderr.

    Args:
        verbose: Log at DEBUG instead of INFO
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    # GitPython logs every command at DEBUG, which would echo remote URLs
    logging.getLogger("git").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
