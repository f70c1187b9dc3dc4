"""
Logging configuration.

Sets up console logging for the service once per process. Log level and
format come from the Flask config (``LOG_LEVEL``, ``LOG_FORMAT``), which in
turn reads the environment.
"""

import logging
import logging.config
from typing import Optional

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

# Third-party loggers held back to reduce noise
MODULE_LOG_LEVELS = {
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "hpack": "WARNING",
    "werkzeug": "INFO",
}


def _pick_format(log_format: str) -> str:
    if log_format == "json":
        return JSON_FORMAT
    if log_format == "simple":
        return SIMPLE_FORMAT
    return DETAILED_FORMAT


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure logging for the application.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (default INFO)
        log_format: simple, detailed or json (default detailed)
    """
    level = (log_level or "INFO").upper()

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": _pick_format(log_format or "detailed")},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "financial_service": {"level": level, "handlers": ["console"], "propagate": False},
            **{name: {"level": lvl} for name, lvl in MODULE_LOG_LEVELS.items()},
        },
        "root": {"level": level, "handlers": ["console"]},
    }
    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured (level=%s, format=%s)", level, log_format)
