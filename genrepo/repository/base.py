"""
Repository abstract base class and generic implementations (async and sync).
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Generic, List, Optional, Tuple, Type, TypeVar
from sqlalchemy import func, inspect
from sqlalchemy.orm import make_transient_to_detached
from sqlmodel import Session, SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel.sql.expression import SelectOfScalar

from genrepo.config import settings
from genrepo.exceptions.errors import ArgumentInvalidError, MultipleMatchesError
from genrepo.exceptions.handler import data_access_guard, run_with_timeout
from genrepo.logging.logger import get_logger
from .query import Include, OrderBy, OrderKey, Predicate, apply_ordering, paginate
from .tracking import untracked

T = TypeVar("T", bound=SQLModel)
R = TypeVar("R")


class IRepository(ABC, Generic[T]):
    """Repository interface; defines the standard async data access API."""

    @abstractmethod
    async def get_all(
        self,
        predicate: Optional[Predicate] = None,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
        page_number: int = 0,
        page_size: int = 0,
    ) -> List[T]:
        """Get entities, optionally filtered, ordered, eager-loaded and paged."""
        pass

    @abstractmethod
    async def find_by_id(self, key: Any) -> Optional[T]:
        """Get entity by primary key."""
        pass

    @abstractmethod
    async def find(self, predicate: Predicate, include: Optional[Include] = None) -> Optional[T]:
        """Get the first entity matching predicate."""
        pass

    @abstractmethod
    async def filter(
        self,
        predicate: Predicate,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
    ) -> List[T]:
        """Get every entity matching predicate."""
        pass

    @abstractmethod
    async def any_matching(self, predicate: Predicate) -> bool:
        """Check whether any entity matches predicate."""
        pass

    @abstractmethod
    async def post(self, entity: T) -> T:
        """Stage entity for insertion."""
        pass

    @abstractmethod
    async def delete(self, entity: T) -> None:
        """Stage entity for removal."""
        pass

    @abstractmethod
    async def attach(self, entity: T) -> None:
        """Track an already-identified entity."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count all entities."""
        pass


class RepositoryCore(Generic[T]):
    """Statement building and argument checks shared by both repository flavours."""

    def __init__(self, session, model: Type[T]):
        if session is None:
            raise ArgumentInvalidError("session")
        if model is None:
            raise ArgumentInvalidError("model")
        self.session = session
        self.model = model

    @property
    def logger(self):
        return get_logger(f"repository.{self.model.__name__}")

    def _operation(self, name: str) -> str:
        return f"{self.model.__name__}.{name}"

    def key_of(self, entity: T) -> Tuple[Any, ...]:
        """Primary key identity of entity, e.g. (1,)."""
        if entity is None:
            raise ArgumentInvalidError("entity")
        return tuple(inspect(self.model).primary_key_from_instance(entity))

    def query(
        self,
        predicate: Optional[Predicate] = None,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
        page_number: int = 0,
        page_size: int = 0,
    ) -> SelectOfScalar[T]:
        """Build, without executing, the select for a read: filter -> order -> include -> page."""
        statement = select(self.model)
        if predicate is not None:
            statement = statement.where(predicate)
        statement = apply_ordering(statement, self.model, order_by, direction)
        if include is not None:
            statement = include(statement)
        return paginate(statement, page_number, page_size)

    def _lookup_statement(self, predicate: Predicate, include: Optional[Include], limit: int) -> SelectOfScalar[T]:
        self._require(predicate, "predicate")
        statement = select(self.model)
        if include is not None:
            statement = include(statement)
        return statement.where(predicate).limit(limit)

    def _exists_statement(self, predicate: Predicate):
        self._require(predicate, "predicate")
        return select(select(self.model).where(predicate).exists())

    def _count_statement(self):
        return select(func.count()).select_from(self.model)

    def _single(self, rows: List[T]) -> Optional[T]:
        if len(rows) > 1:
            raise MultipleMatchesError(self.model.__name__)
        return rows[0] if rows else None

    def _prepare_attach(self, entity: T) -> None:
        """Turn a transient instance that carries its key into a detached one."""
        state = inspect(entity)
        if state.transient:
            if any(value is None for value in self.key_of(entity)):
                raise ArgumentInvalidError(
                    "entity", f"{self.model.__name__} must carry its primary key to be attached"
                )
            make_transient_to_detached(entity)

    @staticmethod
    def _require(value: Any, name: str) -> None:
        if value is None:
            raise ArgumentInvalidError(name)


class BaseRepository(RepositoryCore[T], IRepository[T]):
    """Generic async repository over an AsyncSession; subclasses can add custom queries."""

    def __init__(self, session: AsyncSession, model: Type[T], timeout: Optional[float] = None):
        """Initialize repository with session, model and an optional per-call timeout (seconds)."""
        super().__init__(session, model)
        self.timeout = timeout if timeout is not None else settings.QUERY_TIMEOUT_SECONDS

    async def _timed(self, awaitable: Awaitable[R], operation: str) -> R:
        return await run_with_timeout(awaitable, self._operation(operation), self.timeout)

    async def _fetch_all(self, statement: SelectOfScalar[T], operation: str) -> List[T]:
        with data_access_guard(self._operation(operation)):
            with untracked(self.session.sync_session):
                result = await self._timed(self.session.exec(statement), operation)
                rows = list(result.unique().all())
        self.logger.debug(f"{operation} returned {len(rows)} row(s)")
        return rows

    async def get_all(
        self,
        predicate: Optional[Predicate] = None,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
        page_number: int = 0,
        page_size: int = 0,
    ) -> List[T]:
        """Get entities (untracked); paging applies only when page_number and page_size are both > 0."""
        statement = self.query(predicate, include, order_by, direction, page_number, page_size)
        return await self._fetch_all(statement, "get_all")

    async def find_by_id(self, key: Any) -> Optional[T]:
        """Get entity by primary key; an instance already loaded in this session is returned as is."""
        self._require(key, "key")
        with data_access_guard(self._operation("find_by_id")):
            with self.session.sync_session.no_autoflush:
                return await self._timed(self.session.get(self.model, key), "find_by_id")

    async def find(self, predicate: Predicate, include: Optional[Include] = None) -> Optional[T]:
        """Get the first entity matching predicate, or None."""
        statement = self._lookup_statement(predicate, include, limit=1)
        with data_access_guard(self._operation("find")):
            with self.session.sync_session.no_autoflush:
                result = await self._timed(self.session.exec(statement), "find")
                return result.first()

    async def find_single(self, predicate: Predicate, include: Optional[Include] = None) -> Optional[T]:
        """Get the only entity matching predicate, or None; MultipleMatchesError if several match."""
        statement = self._lookup_statement(predicate, include, limit=2)
        with data_access_guard(self._operation("find_single")):
            with self.session.sync_session.no_autoflush:
                result = await self._timed(self.session.exec(statement), "find_single")
                rows = list(result.unique().all())
        return self._single(rows)

    async def filter(
        self,
        predicate: Predicate,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
    ) -> List[T]:
        """Get every entity matching predicate (untracked)."""
        self._require(predicate, "predicate")
        statement = self.query(predicate, include, order_by, direction)
        return await self._fetch_all(statement, "filter")

    async def any_matching(self, predicate: Predicate) -> bool:
        """Check whether at least one entity matches predicate."""
        statement = self._exists_statement(predicate)
        with data_access_guard(self._operation("any_matching")):
            with self.session.sync_session.no_autoflush:
                result = await self._timed(self.session.exec(statement), "any_matching")
                return bool(result.one())

    async def post(self, entity: T) -> T:
        """Stage entity for insertion; nothing is written before UnitOfWork.save()."""
        self._require(entity, "entity")
        with data_access_guard(self._operation("post")):
            self.session.add(entity)
        self.logger.debug(f"Staged insert of {self.model.__name__}")
        return entity

    async def delete(self, entity: T) -> None:
        """Stage entity for removal."""
        self._require(entity, "entity")
        with data_access_guard(self._operation("delete")):
            await self._timed(self.session.delete(entity), "delete")
        self.logger.debug(f"Staged delete of {self.model.__name__} {self.key_of(entity)}")

    async def attach(self, entity: T) -> None:
        """Track an already-identified entity so later changes to it are saved as an update."""
        self._require(entity, "entity")
        with data_access_guard(self._operation("attach")):
            self._prepare_attach(entity)
            self.session.add(entity)
        self.logger.debug(f"Attached {self.model.__name__} {self.key_of(entity)}")

    async def count(self) -> int:
        """Count all entities (staged inserts not included)."""
        with data_access_guard(self._operation("count")):
            with self.session.sync_session.no_autoflush:
                result = await self._timed(self.session.exec(self._count_statement()), "count")
                return result.one()


class SyncRepository(RepositoryCore[T]):
    """Generic blocking repository over a Session; same contract as BaseRepository."""

    def __init__(self, session: Session, model: Type[T]):
        super().__init__(session, model)

    def _fetch_all(self, statement: SelectOfScalar[T], operation: str) -> List[T]:
        with data_access_guard(self._operation(operation)):
            with untracked(self.session):
                rows = list(self.session.exec(statement).unique().all())
        self.logger.debug(f"{operation} returned {len(rows)} row(s)")
        return rows

    def get_all(
        self,
        predicate: Optional[Predicate] = None,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
        page_number: int = 0,
        page_size: int = 0,
    ) -> List[T]:
        statement = self.query(predicate, include, order_by, direction, page_number, page_size)
        return self._fetch_all(statement, "get_all")

    def find_by_id(self, key: Any) -> Optional[T]:
        self._require(key, "key")
        with data_access_guard(self._operation("find_by_id")):
            with self.session.no_autoflush:
                return self.session.get(self.model, key)

    def find(self, predicate: Predicate, include: Optional[Include] = None) -> Optional[T]:
        statement = self._lookup_statement(predicate, include, limit=1)
        with data_access_guard(self._operation("find")):
            with self.session.no_autoflush:
                return self.session.exec(statement).first()

    def find_single(self, predicate: Predicate, include: Optional[Include] = None) -> Optional[T]:
        statement = self._lookup_statement(predicate, include, limit=2)
        with data_access_guard(self._operation("find_single")):
            with self.session.no_autoflush:
                rows = list(self.session.exec(statement).unique().all())
        return self._single(rows)

    def filter(
        self,
        predicate: Predicate,
        include: Optional[Include] = None,
        order_by: Optional[OrderKey] = None,
        direction: OrderBy = OrderBy.ASCENDING,
    ) -> List[T]:
        self._require(predicate, "predicate")
        statement = self.query(predicate, include, order_by, direction)
        return self._fetch_all(statement, "filter")

    def any_matching(self, predicate: Predicate) -> bool:
        statement = self._exists_statement(predicate)
        with data_access_guard(self._operation("any_matching")):
            with self.session.no_autoflush:
                return bool(self.session.exec(statement).one())

    def post(self, entity: T) -> T:
        self._require(entity, "entity")
        with data_access_guard(self._operation("post")):
            self.session.add(entity)
        self.logger.debug(f"Staged insert of {self.model.__name__}")
        return entity

    def delete(self, entity: T) -> None:
        self._require(entity, "entity")
        with data_access_guard(self._operation("delete")):
            self.session.delete(entity)
        self.logger.debug(f"Staged delete of {self.model.__name__} {self.key_of(entity)}")

    def attach(self, entity: T) -> None:
        self._require(entity, "entity")
        with data_access_guard(self._operation("attach")):
            self._prepare_attach(entity)
            self.session.add(entity)
        self.logger.debug(f"Attached {self.model.__name__} {self.key_of(entity)}")

    def count(self) -> int:
        with data_access_guard(self._operation("count")):
            with self.session.no_autoflush:
                return self.session.exec(self._count_statement()).one()
