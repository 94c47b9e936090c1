"""
Logging configuration
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import structlog

_configured_level: Optional[int] = None


def setup_logger(
    name: Optional[str] = None,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> structlog.BoundLogger:
    """
    Set up structured logging.

    The level defaults to the LOG_LEVEL environment variable (INFO when unset).
    structlog is only reconfigured when the effective level or file changes,
    so every module can call this at import time.
    """
    global _configured_level

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    if _configured_level != log_level or log_file:
        handlers = [logging.StreamHandler(sys.stdout)]

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))

        logging.basicConfig(
            format="%(message)s",
            level=log_level,
            handlers=handlers,
            force=bool(log_file)
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer()
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=False
        )
        _configured_level = log_level

    return structlog.get_logger(name)
