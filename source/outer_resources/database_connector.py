"""Database connection module."""
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)


class DatabaseConnector:
    """Owner of an async SQLAlchemy engine."""

    @dataclass
    class Config:
        """config."""

        url: str
        echo: bool = False
        pool_pre_ping: bool = True
        engine_options: dict[str, Any] = field(default_factory=dict)

    def __init__(self, config: Config) -> None:
        """init."""
        self.config = config
        self.engine: AsyncEngine = create_async_engine(
            config.url,
            echo=config.echo,
            pool_pre_ping=config.pool_pre_ping,
            **config.engine_options,
        )
        logger.info(f"{type(self).__name__} inited: {self.engine.url.render_as_string(hide_password=True)}")

    async def create_tables(self, metadata: MetaData) -> None:
        """Create missing tables of metadata."""
        async with self.engine.begin() as connection:
            await connection.run_sync(metadata.create_all)

    async def dispose(self) -> None:
        """Close pooled connections."""
        await self.engine.dispose()


class DatabaseSessionMaker:
    """Hands out one transactional session per task."""

    @dataclass
    class Context:
        """context."""

        database_connector: DatabaseConnector

    def __init__(self, context: Context) -> None:
        """init."""
        self.context = context
        self._session_maker = async_sessionmaker(context.database_connector.engine, expire_on_commit=False)
        self._current_session: ContextVar[Optional[AsyncSession]] = ContextVar(
            f"current_session_{id(self)}", default=None
        )
        logger.info(f"{type(self).__name__} inited")

    @asynccontextmanager
    async def ensure_session(self) -> AsyncIterator[AsyncSession]:
        """Reuse session of the enclosing block or open a new one, committing on exit."""
        if (session := self._current_session.get()) is not None:
            yield session
            return

        async with self._session_maker() as session:
            token = self._current_session.set(session)
            try:
                async with session.begin():
                    yield session
            finally:
                self._current_session.reset(token)
