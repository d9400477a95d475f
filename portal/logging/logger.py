import sys
from pathlib import Path
from contextvars import ContextVar
from typing import Optional
from loguru import logger
from fastapi import Request
from portal.config import settings

# Store current request in contextvars for async context
_current_request: ContextVar[Optional[Request]] = ContextVar("current_request", default=None)

# Ensure log directory exists
LOG_DIR = Path(settings.LOG_DIR)
LOG_DIR.mkdir(parents=True, exist_ok=True)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | Trace:{extra[trace_id]} - {message}"


class LogConfig:
    """Global logging configuration using Loguru."""

    @staticmethod
    def _console_format(tag: str) -> str:
        return (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            f"<magenta>{tag}</magenta> - <level>{{message}}</level>"
        )

    @classmethod
    def _add_sinks(cls, file_prefix: str, console_tag: str):
        logger.remove()

        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            diagnose=settings.DEBUG,
            format=cls._console_format(console_tag),
            level="DEBUG" if settings.DEBUG else "INFO",
        )

        # Daily rotation; PHI must not be logged, so keep message texts to ids
        logger.add(
            LOG_DIR / f"{file_prefix}_{{time:YYYY-MM-DD}}.log",
            rotation="00:00",
            retention="30 days",
            compression="zip",
            enqueue=True,
            format=FILE_FORMAT,
            level="DEBUG",
        )

        logger.add(
            LOG_DIR / f"{file_prefix}_error_{{time:YYYY-MM-DD}}.log",
            level="ERROR",
            rotation="100 MB",
            enqueue=True,
            format=FILE_FORMAT,
        )

    @classmethod
    def setup_logging(cls):
        cls._add_sinks("app", "Trace:{extra[trace_id]}")
        logger.configure(extra={"trace_id": "system"})

    @classmethod
    def setup_worker_logging(cls, worker_id: str):
        """Configure logging for a notification worker; logs go to a separate file."""
        cls._add_sinks(f"worker_{worker_id}", f"Worker-{worker_id}")
        logger.configure(extra={"trace_id": f"worker-{worker_id}"})


def get_logger(name: str = None, request: Optional[Request] = None):
    """Get logger instance; optionally pass request for trace_id, else from context."""
    current_request = request or _current_request.get()

    if current_request is not None:
        trace_id = getattr(current_request.state, "trace_id", "unknown")
    else:
        trace_id = "unknown"

    if name:
        return logger.bind(name=name, trace_id=trace_id)
    return logger.bind(trace_id=trace_id)
