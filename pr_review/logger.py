from __future__ import annotations

import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from loguru import logger as _logger

_CONFIGURED = False
LOG_DIR_ENV = "PR_REVIEW_LOG_DIR"
LOG_LEVEL_ENV = "PR_REVIEW_LOG_LEVEL"


def _resolve_log_dir(explicit: str | Path | None) -> Path | None:
    """Determine the directory to store log files, if file logging is wanted."""

    if explicit is not None:
        return Path(explicit).expanduser().resolve()
    env_value = os.getenv(LOG_DIR_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve()
    return None


def configure_logger(*, log_dir: str | Path | None = None, level: str | None = None) -> None:
    """Configure the Loguru logger exactly once per process.

    CI runs only get the stdout sink; a rotating file sink is added when a log
    directory is passed explicitly or through ``PR_REVIEW_LOG_DIR``.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    log_level = level or os.getenv(LOG_LEVEL_ENV, "INFO")

    _logger.remove()
    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    _logger.add(
        sys.stdout,
        level=log_level,
        format=log_format,
        colorize=sys.stdout.isatty(),
    )

    target_dir = _resolve_log_dir(log_dir)
    if target_dir is not None:
        target_dir.mkdir(parents=True, exist_ok=True)
        _logger.add(
            target_dir / "pr-review-{time:YYYY-MM-DD}.log",
            rotation="20 MB",
            retention="7 days",
            level="DEBUG",
            format=log_format,
            backtrace=True,
            diagnose=False,
        )

    _CONFIGURED = True


def get_logger(*, log_dir: str | Path | None = None, level: str | None = None):
    """Return the configured logger, configuring it on first access."""

    configure_logger(log_dir=log_dir, level=level)
    return _logger


def log_with_context(logger_instance, **context: str | int | None) -> Any:
    """Bind review context (repository, pr_number, filename...) to log records.

    Usage:
        logger = log_with_context(get_logger(), repository="owner/repo", pr_number=42)
        logger.info("Fetching changed files")
    """
    return logger_instance.bind(**{k: v for k, v in context.items() if v is not None})


def log_timing(logger_instance, operation: str, **context: str | int | None):
    """Context manager that logs how long a pipeline stage took.

    Usage:
        with log_timing(logger, "fetch_changed_files", repository="owner/repo"):
            ...
    """
    @contextmanager
    def _timing():
        start_time = time.perf_counter()
        ctx_logger = log_with_context(logger_instance, **context)
        ctx_logger.debug(f"Starting {operation}")
        try:
            yield ctx_logger
            duration = time.perf_counter() - start_time
            ctx_logger.debug(f"Completed {operation} in {duration:.3f}s")
        except Exception as exc:
            duration = time.perf_counter() - start_time
            ctx_logger.error(f"Failed {operation} after {duration:.3f}s: {exc}")
            raise
    return _timing()


def log_success(logger_instance, message: str, **context: str | int | None) -> None:
    """Log a success message with context."""
    log_with_context(logger_instance, **context).info(f"=== SUCCESS: {message} ===")


def log_failure(logger_instance, message: str, error: Exception | None = None, **context: str | int | None) -> None:
    """Log a failure message with context and optional error."""
    ctx_logger = log_with_context(logger_instance, **context)
    if error:
        ctx_logger.error(f"=== FAILURE: {message} | Error: {error} ===")
    else:
        ctx_logger.error(f"=== FAILURE: {message} ===")
