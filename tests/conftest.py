"""Test config and shared fixtures."""
import pytest
from typing import AsyncGenerator, Generator
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from genrepo.database.sql_driver import AsyncSQLDriver, SQLDriver
from genrepo.repository import SyncUnitOfWork, UnitOfWork
from sample_models import Author, Book


# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite://"
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite://"

SCENARIO_NAMES = ["A", "B", "A"]


@pytest.fixture(scope="function")
def sync_driver() -> Generator[SQLDriver, None, None]:
    """Create blocking driver on a fresh in-memory database."""
    driver = SQLDriver(
        TEST_DATABASE_URL,
        engine_options={"connect_args": {"check_same_thread": False}, "poolclass": StaticPool},
    )
    driver.create_all()
    yield driver
    SQLModel.metadata.drop_all(driver.engine)
    driver.disconnect()


@pytest.fixture(scope="function")
async def async_driver() -> AsyncGenerator[AsyncSQLDriver, None]:
    """Create async driver on a fresh in-memory database."""
    driver = AsyncSQLDriver(
        TEST_ASYNC_DATABASE_URL,
        engine_options={"connect_args": {"check_same_thread": False}, "poolclass": StaticPool},
    )
    await driver.create_all()
    yield driver
    async with driver.engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await driver.disconnect()


@pytest.fixture
def uow(sync_driver: SQLDriver) -> Generator[SyncUnitOfWork, None, None]:
    """Blocking unit of work; closed after the test."""
    with sync_driver.unit_of_work() as unit:
        yield unit


@pytest.fixture
async def async_uow(async_driver: AsyncSQLDriver) -> AsyncGenerator[UnitOfWork, None]:
    """Async unit of work; closed after the test."""
    async with async_driver.unit_of_work() as unit:
        yield unit


@pytest.fixture
def sample_authors(sync_driver: SQLDriver) -> list:
    """Seed {1: A, 2: B, 3: A} through a separate, already closed unit of work."""
    with sync_driver.unit_of_work() as seed:
        repo = seed.repository_for(Author)
        for name in SCENARIO_NAMES:
            repo.post(Author(name=name))
        seed.save()
    return SCENARIO_NAMES


@pytest.fixture
def sample_books(sync_driver: SQLDriver, sample_authors) -> None:
    """Two books for author 1, one for author 2."""
    with sync_driver.unit_of_work() as seed:
        repo = seed.repository_for(Book)
        repo.post(Book(title="First", author_id=1))
        repo.post(Book(title="Second", author_id=1))
        repo.post(Book(title="Third", author_id=2))
        seed.save()


@pytest.fixture
def many_authors(sync_driver: SQLDriver) -> int:
    """Seed 25 authors with ids 1..25."""
    with sync_driver.unit_of_work() as seed:
        repo = seed.repository_for(Author)
        for number in range(1, 26):
            repo.post(Author(id=number, name=f"author-{number:02d}"))
        seed.save()
    return 25


@pytest.fixture
async def async_sample_authors(async_driver: AsyncSQLDriver) -> list:
    """Async counterpart of sample_authors."""
    async with async_driver.unit_of_work() as seed:
        repo = seed.repository_for(Author)
        for name in SCENARIO_NAMES:
            await repo.post(Author(name=name))
        await seed.save()
    return SCENARIO_NAMES
