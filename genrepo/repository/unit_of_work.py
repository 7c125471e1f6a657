"""
Unit of Work: owns one session, hands out repositories bound to it, single commit point.
"""

import inspect
import uuid
from typing import Any, Callable, Dict, Optional, Type
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from sqlmodel.ext.asyncio.session import AsyncSession

from genrepo.config import settings
from genrepo.exceptions.errors import ArgumentInvalidError, DataAccessError
from genrepo.exceptions.handler import run_with_timeout, to_data_access_error
from genrepo.logging.logger import bind_trace_id, get_logger
from .base import BaseRepository, RepositoryCore, SyncRepository, T


class UnitOfWorkCore:
    """Repository cache, write tracking and lifecycle shared by both unit-of-work flavours."""

    repository_class: Type[RepositoryCore] = RepositoryCore

    def __init__(self, session):
        if session is None:
            raise ArgumentInvalidError(
                "session", "Session must be provided. Use from_session()/from_factory() or pass session explicitly."
            )
        self.session = session
        self.trace_id = uuid.uuid4().hex[:8]
        self._repositories: Dict[Any, RepositoryCore] = {}
        self._has_writes = False
        self._closed = False
        self._previous_trace_id: Optional[str] = None
        event.listen(self._sync_session, "after_flush", self._on_flush)

    @property
    def _sync_session(self) -> Session:
        return self.session

    @property
    def logger(self):
        return get_logger("unit_of_work", trace_id=self.trace_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_flush(self, session, flush_context) -> None:
        # new/dirty/deleted still hold the pre-flush state here
        if session.new or session.deleted or any(session.is_modified(obj) for obj in session.dirty):
            self._has_writes = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise DataAccessError("unit of work is closed")

    def _new_repository(self, model: Type[T], repo_class: Type[RepositoryCore]) -> RepositoryCore:
        # subclasses that bind their own model take the session only
        if "model" in inspect.signature(repo_class).parameters:
            return repo_class(self.session, model)
        return repo_class(self.session)

    def repository_for(self, model: Type[T], repo_class: Optional[Type[RepositoryCore]] = None) -> RepositoryCore:
        """
        Get the repository for model, created once per unit of work.

        repo_class plugs in a subclass with custom queries; it is built as
        repo_class(session) when it binds its own model, else repo_class(session, model).
        """
        self._ensure_open()
        if model is None:
            raise ArgumentInvalidError("model")
        cache_key = model if repo_class is None else (repo_class, model)
        if cache_key not in self._repositories:
            self._repositories[cache_key] = self._new_repository(model, repo_class or self.repository_class)
        return self._repositories[cache_key]

    def get_repository(self, repo_class, model_class):
        """Get or create a custom repository instance (cached)."""
        return self.repository_for(model_class, repo_class)

    def _take_writes(self) -> bool:
        has_writes, self._has_writes = self._has_writes, False
        return has_writes

    def _release(self) -> None:
        event.remove(self._sync_session, "after_flush", self._on_flush)
        self._repositories.clear()
        self._closed = True

    def _enter_trace(self) -> None:
        self._previous_trace_id = bind_trace_id(self.trace_id)

    def _exit_trace(self) -> None:
        if self._previous_trace_id is not None:
            bind_trace_id(self._previous_trace_id)
            self._previous_trace_id = None


class UnitOfWork(UnitOfWorkCore):
    """Manages repositories sharing one AsyncSession; save() is the only commit point."""

    repository_class = BaseRepository

    def __init__(self, session: Optional[AsyncSession] = None, timeout: Optional[float] = None):
        """Initialize UnitOfWork; session must be provided (e.g. UnitOfWork.from_session())."""
        super().__init__(session)
        self.timeout = timeout if timeout is not None else settings.QUERY_TIMEOUT_SECONDS

    @property
    def _sync_session(self) -> Session:
        return self.session.sync_session

    @classmethod
    async def from_session(cls, session: AsyncSession, timeout: Optional[float] = None) -> "UnitOfWork":
        """Create UnitOfWork from an existing session."""
        return cls(session=session, timeout=timeout)

    @classmethod
    def from_factory(cls, session_factory: Callable[[], AsyncSession], timeout: Optional[float] = None) -> "UnitOfWork":
        """Create UnitOfWork on a fresh session from session_factory."""
        return cls(session=session_factory(), timeout=timeout)

    def _new_repository(self, model: Type[T], repo_class: Type[RepositoryCore]) -> BaseRepository[T]:
        repository = super()._new_repository(model, repo_class)
        # the unit's timeout governs every repository bound to its session
        repository.timeout = self.timeout
        return repository

    def repository_for(self, model: Type[T], repo_class: Optional[Type[BaseRepository]] = None) -> BaseRepository[T]:
        return super().repository_for(model, repo_class)

    async def save(self) -> bool:
        """Commit all staged changes atomically; returns whether any row was written."""
        self._ensure_open()
        try:
            await run_with_timeout(self.session.commit(), "UnitOfWork.save", self.timeout)
        except SQLAlchemyError as exc:
            await self.rollback()
            raise to_data_access_error(exc, "UnitOfWork.save") from exc
        except DataAccessError:
            await self.rollback()
            raise
        written = self._take_writes()
        self.logger.info(f"Committed unit of work (rows written: {written})")
        return written

    async def flush(self) -> None:
        """Flush session (e.g. to get auto-increment IDs) without committing."""
        self._ensure_open()
        try:
            await run_with_timeout(self.session.flush(), "UnitOfWork.flush", self.timeout)
        except SQLAlchemyError as exc:
            await self.rollback()
            raise to_data_access_error(exc, "UnitOfWork.flush") from exc

    async def rollback(self) -> None:
        """Rollback all changes."""
        self._ensure_open()
        await self.session.rollback()
        self._has_writes = False
        self.logger.warning("Rolled back unit of work")

    async def close(self) -> None:
        """Discard anything uncommitted and release the session."""
        if self._closed:
            return
        try:
            # closing rolls back the open transaction and expunges staged objects
            await self.session.close()
        finally:
            self._release()
        self.logger.debug("Closed unit of work")

    dispose = close

    async def __aenter__(self):
        self._enter_trace()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await self.close()
        finally:
            self._exit_trace()


class SyncUnitOfWork(UnitOfWorkCore):
    """Blocking counterpart of UnitOfWork over a Session."""

    repository_class = SyncRepository

    def __init__(self, session: Optional[Session] = None):
        super().__init__(session)

    @classmethod
    def from_session(cls, session: Session) -> "SyncUnitOfWork":
        return cls(session=session)

    @classmethod
    def from_factory(cls, session_factory: Callable[[], Session]) -> "SyncUnitOfWork":
        return cls(session=session_factory())

    def repository_for(self, model: Type[T], repo_class: Optional[Type[SyncRepository]] = None) -> SyncRepository[T]:
        return super().repository_for(model, repo_class)

    def save(self) -> bool:
        """Commit all staged changes atomically; returns whether any row was written."""
        self._ensure_open()
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.rollback()
            raise to_data_access_error(exc, "SyncUnitOfWork.save") from exc
        written = self._take_writes()
        self.logger.info(f"Committed unit of work (rows written: {written})")
        return written

    def flush(self) -> None:
        self._ensure_open()
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            self.rollback()
            raise to_data_access_error(exc, "SyncUnitOfWork.flush") from exc

    def rollback(self) -> None:
        self._ensure_open()
        self.session.rollback()
        self._has_writes = False
        self.logger.warning("Rolled back unit of work")

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.session.close()
        finally:
            self._release()
        self.logger.debug("Closed unit of work")

    dispose = close

    def __enter__(self):
        self._enter_trace()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.close()
        finally:
            self._exit_trace()
