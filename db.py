from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator
import logging

from sqlalchemy import event, inspect, text, Result, CursorResult
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine

import config
from models.base import Base

"""
Imports of these models are needed to correctly create tables in the database.
For more information see https://stackoverflow.com/questions/7478403/sqlalchemy-classes-across-files
"""
from models.category import Category
from models.subcategory import Subcategory
from models.product import Product
from models.cartItem import CartItem
from models.order import Order
from models.orderLine import OrderLine

logger = logging.getLogger(__name__)

# Connection execution option that makes SQLite open the transaction with BEGIN IMMEDIATE
WRITE_LOCK_OPTION = "write_lock"


class Database:
    """
    Explicit storage handle.

    Owns the engine and the session factory. Nothing is created at import
    time: call init() before use and dispose() on shutdown.

    Usage:
        database = Database("sqlite+aiosqlite:///data/shop.db")
        database.init()
        await database.create_db_and_tables()
        ...
        await database.dispose()
    """

    def __init__(self, url: str | None = None, echo: bool | None = None, timeout: int | None = None):
        self.url = url or config.DB_URL
        self.echo = config.DB_ECHO if echo is None else echo
        self.timeout = timeout or config.TRANSACTION_TIMEOUT
        self.engine: AsyncEngine | None = None
        self.session_maker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.url).get_backend_name() == "sqlite"

    def init(self) -> None:
        if self.engine is not None:
            return

        connect_args = {}
        if self.is_sqlite:
            # Busy timeout: a writer waits this long for a competing transaction
            connect_args["timeout"] = self.timeout
            database_path = make_url(self.url).database
            if database_path and database_path != ":memory:":
                Path(database_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_async_engine(self.url, echo=self.echo, connect_args=connect_args)
        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", set_sqlite_pragma)
            event.listen(self.engine.sync_engine, "begin", begin_sqlite_transaction)

        self.session_maker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(f"Database initialized ({make_url(self.url).render_as_string(hide_password=True)})")

    async def dispose(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self.session_maker = None
        logger.info("Database disposed")

    @asynccontextmanager
    async def get_db_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self.session_maker is None:
            raise RuntimeError("Database is not initialized, call init() first")
        session = None
        try:
            async with self.session_maker() as async_session:
                session = async_session
                yield session
        finally:
            if session is not None:
                await session.close()

    async def check_all_tables_exist(self) -> bool:
        async with self.engine.connect() as conn:
            existing = await conn.run_sync(
                lambda sync_conn: set(inspect(sync_conn).get_table_names())
            )
        return all(table.name in existing for table in Base.metadata.tables.values())

    async def create_db_and_tables(self) -> None:
        if await self.check_all_tables_exist():
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Created {len(Base.metadata.tables)} tables")

def set_sqlite_pragma(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself (see begin_sqlite_transaction)
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def begin_sqlite_transaction(conn):
    # Writers take the write lock at BEGIN so they serialize instead of deadlocking; readers stay deferred
    if conn.get_execution_options().get(WRITE_LOCK_OPTION):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
    else:
        conn.exec_driver_sql("BEGIN")


async def session_execute(stmt, session: AsyncSession) -> Result[Any] | CursorResult[Any]:
    return await session.execute(stmt)


async def session_flush(session: AsyncSession) -> None:
    await session.flush()


async def session_commit(session: AsyncSession) -> None:
    await session.commit()


async def session_rollback(session: AsyncSession) -> None:
    await session.rollback()


async def begin_write(session: AsyncSession, timeout: int) -> None:
    """Open the session's transaction as a writer."""
    await session.connection(execution_options={WRITE_LOCK_OPTION: True})
    await lock_timeout(session, timeout)


async def lock_timeout(session: AsyncSession, seconds: int) -> None:
    """Apply a per-transaction lock wait limit on servers that support it."""
    bind = session.bind
    if bind is not None and bind.dialect.name == "postgresql":
        await session_execute(text(f"SET LOCAL lock_timeout = '{int(seconds)}s'"), session)
