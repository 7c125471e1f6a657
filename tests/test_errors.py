"""Error translation test cases."""
import asyncio
import sqlite3
import pytest
from sqlalchemy.exc import IntegrityError, InvalidRequestError

from genrepo.exceptions.errors import (
    ArgumentInvalidError,
    DataAccessError,
    MultipleMatchesError,
    QueryTimeoutError,
    RepositoryError,
)
from genrepo.exceptions.handler import data_access_guard, innermost_message, run_with_timeout


def _integrity_error() -> IntegrityError:
    return IntegrityError(
        "INSERT INTO books (title) VALUES (?)",
        ("Same",),
        sqlite3.IntegrityError("UNIQUE constraint failed: books.title"),
    )


class TestHierarchy:

    def test_argument_invalid_is_value_error(self):
        error = ArgumentInvalidError("entity")

        assert isinstance(error, ValueError)
        assert isinstance(error, RepositoryError)
        assert error.code == 400
        assert str(error) == "entity cannot be None!"

    def test_data_access_error_message(self):
        error = DataAccessError("disk I/O error")

        assert error.error_description == "disk I/O error"
        assert str(error) == "An error occurred while processing your request, ErrorDescription= disk I/O error."

    def test_timeout_is_data_access_error(self):
        assert isinstance(QueryTimeoutError("Author.count", 0.5), DataAccessError)

    def test_multiple_matches(self):
        error = MultipleMatchesError("Author")

        assert error.code == 409
        assert "Author" in str(error)


class TestTranslation:

    def test_innermost_message_prefers_driver_error(self):
        assert innermost_message(_integrity_error()) == "UNIQUE constraint failed: books.title"

    def test_innermost_message_follows_cause(self):
        try:
            try:
                raise KeyError("root cause")
            except KeyError as inner:
                raise InvalidRequestError("wrapper") from inner
        except InvalidRequestError as exc:
            assert innermost_message(exc) == "'root cause'"

    def test_guard_wraps_sqlalchemy_errors(self):
        original = _integrity_error()

        with pytest.raises(DataAccessError) as exc_info:
            with data_access_guard("Book.post"):
                raise original

        assert exc_info.value.error_description == "UNIQUE constraint failed: books.title"
        assert exc_info.value.original is original
        assert exc_info.value.__cause__ is original

    def test_guard_leaves_other_errors_alone(self):
        with pytest.raises(ArgumentInvalidError):
            with data_access_guard("Book.post"):
                raise ArgumentInvalidError("entity")


class TestTimeout:

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        with pytest.raises(QueryTimeoutError) as exc_info:
            await run_with_timeout(asyncio.sleep(1), "Author.count", 0.01)

        assert exc_info.value.operation == "Author.count"

    @pytest.mark.asyncio
    async def test_no_timeout(self):
        assert await run_with_timeout(asyncio.sleep(0, result=3), "Author.count", None) == 3
