import asyncio
from contextlib import contextmanager
from typing import Awaitable, Optional, TypeVar
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from genrepo.logging.logger import get_logger
from .errors import DataAccessError, QueryTimeoutError

logger = get_logger("exception_handler")

R = TypeVar("R")


def innermost_message(exc: BaseException) -> str:
    """Diagnostic text of the deepest error behind exc (driver error first, then __cause__ chain)."""
    current = exc
    seen = set()
    while id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, DBAPIError) and current.orig is not None:
            current = current.orig
        elif current.__cause__ is not None:
            current = current.__cause__
        else:
            break
    return str(current) or type(current).__name__


def to_data_access_error(exc: SQLAlchemyError, operation: str) -> DataAccessError:
    description = innermost_message(exc)
    logger.error(f"DatabaseError in {operation}: {description}")
    return DataAccessError(description, original=exc)


@contextmanager
def data_access_guard(operation: str):
    """Translate SQLAlchemy failures raised inside the block into DataAccessError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise to_data_access_error(exc, operation) from exc


async def run_with_timeout(awaitable: Awaitable[R], operation: str, timeout: Optional[float]) -> R:
    """Await a store call, bounded by timeout seconds when one is set."""
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        logger.warning(f"{operation} exceeded {timeout}s")
        raise QueryTimeoutError(operation, timeout) from exc
