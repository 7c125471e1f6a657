import sys
from pathlib import Path
from contextvars import ContextVar
from typing import Optional
from loguru import logger
from genrepo.config import settings

# Trace id of the unit of work currently running in this context
_current_trace_id: ContextVar[str] = ContextVar("current_trace_id", default="system")


class LogConfig:
    """Global logging configuration using Loguru."""
    @classmethod
    def setup_logging(cls, level: Optional[str] = None, to_file: Optional[bool] = None):
        level = level or settings.LOG_LEVEL
        to_file = settings.LOG_TO_FILE if to_file is None else to_file

        logger.remove()

        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            diagnose=True,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<magenta>Trace:{extra[trace_id]}</magenta> - <level>{message}</level>"
            ),
            level=level,
        )

        if to_file:
            log_dir = Path(settings.LOG_DIR)
            log_dir.mkdir(parents=True, exist_ok=True)

            logger.add(
                log_dir / "genrepo_{time:YYYY-MM-DD}.log",
                rotation="00:00",
                retention="30 days",
                compression="zip",
                enqueue=True,
                format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | Trace:{extra[trace_id]} - {message}",
                level="DEBUG",
            )

            logger.add(
                log_dir / "genrepo_error_{time:YYYY-MM-DD}.log",
                level="ERROR",
                rotation="100 MB",
                enqueue=True,
            )

        logger.configure(extra={"trace_id": "system"})


def bind_trace_id(trace_id: str) -> str:
    """Set the trace id picked up by get_logger in the current context; returns the previous one."""
    previous = _current_trace_id.get()
    _current_trace_id.set(trace_id)
    return previous


def get_logger(name: str = None, trace_id: Optional[str] = None):
    """Get logger instance; trace_id defaults to the one bound in the current context."""
    trace_id = trace_id or _current_trace_id.get()

    if name:
        return logger.bind(name=name, trace_id=trace_id)
    else:
        return logger.bind(trace_id=trace_id)
