from typing import Any, Dict, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from genrepo.config import Settings, settings as default_settings
from genrepo.logging.logger import get_logger
from genrepo.repository.unit_of_work import SyncUnitOfWork, UnitOfWork
from .base import BaseDatabaseDriver

logger = get_logger("database")


class AsyncSQLDriver(BaseDatabaseDriver):
    def __init__(self, url: str, echo: bool = False, engine_options: Optional[Dict[str, Any]] = None):
        super().__init__(url, echo)
        self.engine = create_async_engine(url, echo=echo, **(engine_options or {}))
        self.session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **engine_options) -> "AsyncSQLDriver":
        settings = settings or default_settings
        return cls(settings.ASYNC_DATABASE_URL, echo=settings.DB_ECHO, engine_options=engine_options)

    async def connect(self):
        """Check the database is reachable (the engine manages connections)."""
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(f"Connected to {self.engine.url.render_as_string(hide_password=True)}")

    async def disconnect(self):
        """Dispose the engine and its connection pool."""
        await self.engine.dispose()

    async def create_all(self):
        """Create tables for every SQLModel table model imported so far."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def get_session(self):
        async with self.session_factory() as session:
            yield session

    def unit_of_work(self, timeout: Optional[float] = None) -> UnitOfWork:
        """New UnitOfWork owning a fresh session."""
        return UnitOfWork.from_factory(self.session_factory, timeout=timeout)


class SQLDriver(BaseDatabaseDriver):
    def __init__(self, url: str, echo: bool = False, engine_options: Optional[Dict[str, Any]] = None):
        super().__init__(url, echo)
        self.engine = create_engine(url, echo=echo, **(engine_options or {}))
        self.session_factory = sessionmaker(
            self.engine, class_=Session, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **engine_options) -> "SQLDriver":
        settings = settings or default_settings
        return cls(settings.DATABASE_URL, echo=settings.DB_ECHO, engine_options=engine_options)

    def connect(self):
        with self.engine.begin() as conn:
            conn.execute(text("SELECT 1"))
        logger.info(f"Connected to {self.engine.url.render_as_string(hide_password=True)}")

    def disconnect(self):
        self.engine.dispose()

    def create_all(self):
        SQLModel.metadata.create_all(self.engine)

    def get_session(self):
        with self.session_factory() as session:
            yield session

    def unit_of_work(self) -> SyncUnitOfWork:
        return SyncUnitOfWork.from_factory(self.session_factory)
