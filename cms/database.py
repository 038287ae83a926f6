from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from cms.middleware import install_query_counter


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE actions unless foreign keys are switched on per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    """
    Handle to the relational store: one async engine plus its session factory.

    Built once by the application factory and stored on ``app.state.db``;
    request handlers receive sessions through the ``get_db`` dependency
    rather than importing a module-level engine.
    """

    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs) -> None:
        if url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_kwargs.setdefault("pool_pre_ping", True)

        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(self.engine)

        # Register the per-request SQL query counter on this engine.
        install_query_counter(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.db.session() as session:
        request.state.db_session = session
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def commit_request_session(request: Request) -> None:
    """Commit the request's ``get_db`` session now rather than at dependency exit."""
    session: AsyncSession | None = getattr(request.state, "db_session", None)
    if session is not None:
        await session.commit()
