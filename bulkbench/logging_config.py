"""
Logging setup for bulkbench.

Modules log through :func:`get_logger`, which keeps every record under the
``bulkbench`` hierarchy. The server, driver and ORM loggers share the same
console handler so a benchmark run reads as one stream.
"""

import functools
import inspect
import logging
import logging.config
import os
import sys
import time
from typing import Any, Dict

ROOT_LOGGER = "bulkbench"

DEVELOPMENT_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-8s | %(message)s"
PRODUCTION_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s | %(pathname)s:%(lineno)d"
FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s"

# Fixed levels for collaborators; ``echo_sql`` raises sqlalchemy.engine itself
LIBRARY_LEVELS = {
    "uvicorn": "INFO",
    "fastapi": "INFO",
    "asyncpg": "WARNING",
    "sqlalchemy.engine": "WARNING",
}


def get_log_level() -> str:
    return os.getenv("BULKBENCH_LOG_LEVEL", "INFO").upper()


def get_log_format() -> str:
    """Longer records with source locations in production, compact ones otherwise."""
    if os.getenv("BULKBENCH_ENV", "development").lower() == "production":
        return PRODUCTION_FORMAT
    return DEVELOPMENT_FORMAT


def _logger_entry(level: str, handlers: list) -> Dict[str, Any]:
    return {"level": level, "handlers": list(handlers), "propagate": False}


def get_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping from the current environment."""
    level = get_log_level()
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "console",
            "stream": sys.stdout,
        },
    }
    bench_handlers = ["console"]

    log_file = os.getenv("BULKBENCH_LOG_FILE")
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "file",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
        }
        bench_handlers.append("file")

    loggers = {ROOT_LOGGER: _logger_entry(level, bench_handlers)}
    for name, library_level in LIBRARY_LEVELS.items():
        loggers[name] = _logger_entry(library_level, ["console"])

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": get_log_format(), "datefmt": "%Y-%m-%d %H:%M:%S"},
            "file": {"format": FILE_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())
    logger = get_logger("logging")
    logger.info("Logging configured with level %s", get_log_level())
    if os.getenv("BULKBENCH_LOG_FILE"):
        logger.info("Writing log file %s", os.getenv("BULKBENCH_LOG_FILE"))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` inside the ``bulkbench`` hierarchy."""
    if name == "__main__":
        name = "main"
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def log_performance(logger: logging.Logger, operation: str):
    """
    Log how long the decorated call took, at DEBUG on success and ERROR on failure.

    Works on plain functions and coroutine functions alike.
    """

    def report(started: float, error: Exception | None = None) -> None:
        duration = time.perf_counter() - started
        if error is None:
            logger.debug("%s finished in %.3fs", operation, duration)
        else:
            logger.error("%s failed after %.3fs: %s", operation, duration, error)

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    report(started, e)
                    raise
                report(started)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                report(started, e)
                raise
            report(started)
            return result

        return wrapper

    return decorator


if not logging.getLogger().handlers:
    setup_logging()
