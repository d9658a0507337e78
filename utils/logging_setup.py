"""Utility helpers for configuring application logging."""
from __future__ import annotations

import logging
import logging.handlers
import os
from typing import Optional

_LOG_FORMAT = "%(asctime)s | %(levelname)8s | %(message)s"
_SYSLOG_FORMAT = "mailrate[%(process)d]: %(levelname)s %(message)s"

APP_LOGGER = "mailrate"


def get_logger(module: str) -> logging.Logger:
    """Return a child of the application logger for ``module``.

    Records propagate to the handlers ``setup_logger`` installs on the
    application logger.
    """

    return logging.getLogger(f"{APP_LOGGER}.{module}")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def setup_logger(
    name: Optional[str] = None,
    syslog: bool = False,
    syslog_address: str = "/dev/log",
    syslog_facility: str = "mail",
) -> logging.Logger:
    """Configure and return a logger instance.

    When called multiple times it reuses the same logger while avoiding
    duplicate handlers.  The level comes from ``LOG_LEVEL`` (default
    ``INFO``); ``VERBOSE=1`` forces ``DEBUG``.  Console output is enabled
    with ``FOREGROUND=1`` and is also used whenever syslog is off.
    """

    logger = logging.getLogger(name or APP_LOGGER)
    if logger.handlers:
        return logger

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if _env_flag("VERBOSE"):
        level = logging.DEBUG
    logger.setLevel(level)
    logger.propagate = False

    if syslog:
        facility = logging.handlers.SysLogHandler.facility_names.get(
            syslog_facility, logging.handlers.SysLogHandler.LOG_MAIL
        )
        try:
            if not os.path.exists(syslog_address):
                raise FileNotFoundError(f"socket {syslog_address} não existe")
            handler: logging.Handler = logging.handlers.SysLogHandler(
                address=syslog_address, facility=facility
            )
        except OSError as exc:
            syslog = False
            logger.addHandler(_console_handler())
            logger.warning("Syslog indisponível em %s: %s", syslog_address, exc)
        else:
            handler.setFormatter(logging.Formatter(_SYSLOG_FORMAT))
            logger.addHandler(handler)

    if (not syslog or _env_flag("FOREGROUND")) and not _has_console(logger):
        logger.addHandler(_console_handler())

    return logger


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


def _has_console(logger: logging.Logger) -> bool:
    return any(type(h) is logging.StreamHandler for h in logger.handlers)
