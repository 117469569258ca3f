"""Logging for the assessment service and the sync client.

Everything logs through stdlib loggers named after their module
(`aria.logic.step_data`, `aria.routes.assessments`, ...) with terse
`event key=value` messages. `configure_logging` installs one stdout handler
on the root logger unless the host (uvicorn, a test runner) already did, and
sets the `aria` level from the argument or `ARIA_LOG_LEVEL`. httpx and
SQLAlchemy stay at WARNING so sync traffic does not drown the step events.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig

LOG_LEVEL_ENV = "ARIA_LOG_LEVEL"

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["console"]},
    "loggers": {
        "aria": {"level": "INFO"},
        "httpx": {"level": "WARNING"},
        "httpcore": {"level": "WARNING"},
        "sqlalchemy.engine": {"level": "WARNING"},
        "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
    },
}


def configure_logging(level: str | None = None) -> None:
    """Install the stdout handler once and apply the `aria` log level.

    The level applies even when root handlers already exist.
    """
    if not logging.getLogger().handlers:
        dictConfig(_DICT_CONFIG)
    level = level or os.getenv(LOG_LEVEL_ENV, "").strip()
    if level:
        logging.getLogger("aria").setLevel(level.upper())


__all__ = ["configure_logging", "LOG_LEVEL_ENV"]
