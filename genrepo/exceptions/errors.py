"""
Repository exception hierarchy.

Store-level faults of any kind are normalized to DataAccessError; argument misuse is
reported before the session is touched. "Not found" is a None result, never an error.
"""

from typing import Any, Optional


class RepositoryError(Exception):
    """Base class for data access layer errors."""
    def __init__(self, message: str, code: int = 500, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail

    def __str__(self) -> str:
        return self.message


class ArgumentInvalidError(RepositoryError, ValueError):
    """A required argument (predicate, entity, session, ...) was missing or unusable."""
    def __init__(self, argument: str, message: Optional[str] = None):
        super().__init__(message or f"{argument} cannot be None!", code=400, detail={"argument": argument})
        self.argument = argument


class DataAccessError(RepositoryError):
    """The underlying store rejected an operation."""
    def __init__(self, error_description: str, original: Optional[BaseException] = None):
        self.error_description = error_description
        self.original = original
        super().__init__(
            f"An error occurred while processing your request, ErrorDescription= {error_description}.",
            code=500,
            detail={"error_description": error_description},
        )


class QueryTimeoutError(DataAccessError):
    """An async store round trip did not finish within its timeout."""
    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} timed out after {timeout}s")
        self.operation = operation
        self.timeout = timeout


class MultipleMatchesError(RepositoryError):
    """A lookup expected to identify at most one row matched several."""
    def __init__(self, model_name: str):
        super().__init__(f"More than one {model_name} matches the predicate", code=409, detail={"model": model_name})
        self.model_name = model_name
