"""
Database access with async SQLAlchemy.

``Database`` owns the engine for the lifetime of the process; request
handlers receive a ``StoreConnection`` through ``get_store_connection`` and
issue parameterized statements through ``query_all``, ``query_one`` and
``execute``, with explicit transaction demarcation.
"""

from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import Connection, RowMapping, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import Executable
from sqlalchemy.sql.dml import Insert

from contactbook.config import get_settings
from contactbook.shared.exceptions import ExecutionError, QueryError
from contactbook.shared.logging import get_logger

logger = get_logger(__name__)

Statement = Union[Executable, str]
Params = Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None]


class Base(DeclarativeBase):
    """Declarative base holding the metadata of every table."""


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a write statement."""

    last_insert_id: Any | None
    rows_affected: int


def _as_executable(statement: Statement) -> Executable:
    if isinstance(statement, str):
        return text(statement)
    return statement


def _describe(exc: SQLAlchemyError) -> str:
    original = getattr(exc, "orig", None)
    return str(original) if original is not None else str(exc)


class StoreConnection:
    """A single store connection with explicit transaction control.

    Transactions do not nest: ``begin`` while one is open raises
    ``ExecutionError``. Rows of a failing unit inside an open transaction
    can be isolated with ``savepoint``.
    """

    def __init__(self, connection: AsyncConnection) -> None:
        self._conn = connection
        self._explicit = False

    @property
    def in_transaction(self) -> bool:
        return self._explicit

    async def query_all(self, statement: Statement, params: Params = None) -> list[RowMapping]:
        """Run a read statement and return every row."""
        try:
            result = await self._conn.execute(_as_executable(statement), params)
            return list(result.mappings().all())
        except SQLAlchemyError as exc:
            logger.error("Query failed", extra={"error": _describe(exc)})
            raise QueryError(_describe(exc)) from exc

    async def query_one(self, statement: Statement, params: Params = None) -> RowMapping | None:
        """Run a read statement and return the first row, or None."""
        try:
            result = await self._conn.execute(_as_executable(statement), params)
            return result.mappings().first()
        except SQLAlchemyError as exc:
            logger.error("Query failed", extra={"error": _describe(exc)})
            raise QueryError(_describe(exc)) from exc

    async def execute(self, statement: Statement, params: Params = None) -> ExecutionResult:
        """Run a write statement.

        A sequence of parameter mappings is sent as one multi-row
        (executemany) statement. ``last_insert_id`` is only reported for
        single-row INSERT constructs.
        """
        executable = _as_executable(statement)
        many = isinstance(params, Sequence) and not isinstance(params, Mapping)
        try:
            result = await self._conn.execute(executable, params)
        except SQLAlchemyError as exc:
            logger.error("Statement failed", extra={"error": _describe(exc)})
            raise ExecutionError(_describe(exc)) from exc

        last_insert_id = None
        if isinstance(executable, Insert) and not many:
            primary_key = result.inserted_primary_key
            last_insert_id = primary_key[0] if primary_key else None
        return ExecutionResult(last_insert_id=last_insert_id, rows_affected=result.rowcount)

    async def begin(self) -> None:
        """Open an explicit transaction."""
        if self._explicit:
            raise ExecutionError("A transaction is already open on this connection")
        try:
            # Reads issued before begin() autobegin an implicit transaction.
            if self._conn.in_transaction():
                await self._conn.commit()
            await self._conn.begin()
        except SQLAlchemyError as exc:
            raise ExecutionError(_describe(exc)) from exc
        self._explicit = True

    async def commit(self) -> None:
        if not self._explicit:
            raise ExecutionError("No open transaction to commit")
        self._explicit = False
        try:
            await self._conn.commit()
        except SQLAlchemyError as exc:
            raise ExecutionError(_describe(exc)) from exc

    async def rollback(self) -> None:
        self._explicit = False
        try:
            await self._conn.rollback()
        except SQLAlchemyError as exc:
            raise ExecutionError(_describe(exc)) from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator["StoreConnection", None]:
        """Begin, then commit on success or roll back on any error."""
        await self.begin()
        try:
            yield self
        except BaseException:
            await self.rollback()
            raise
        await self.commit()

    @asynccontextmanager
    async def savepoint(self) -> AsyncGenerator[None, None]:
        """Nested scope inside the open transaction.

        An error inside the block rolls back only the work done in it.
        """
        if not self._explicit:
            raise ExecutionError("Savepoints require an open transaction")
        try:
            nested = await self._conn.begin_nested()
        except SQLAlchemyError as exc:
            raise ExecutionError(_describe(exc)) from exc
        try:
            yield
        except BaseException:
            await nested.rollback()
            raise
        await nested.commit()


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Enable foreign keys and working SAVEPOINTs on SQLite connections.

    The driver's own transaction handling is disabled so that SQLAlchemy
    emits BEGIN itself.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the async engine and hands out store connections."""

    def __init__(
        self,
        database_url: str | None = None,
        *,
        busy_timeout: float | None = None,
        echo: bool | None = None,
    ) -> None:
        """Initialize the database.

        Args:
            database_url: Optional database URL override.
            busy_timeout: Seconds to wait on a locked SQLite store.
            echo: Log every SQL statement.
        """
        settings = get_settings()
        self._database_url = database_url or settings.database_url
        self._busy_timeout = busy_timeout if busy_timeout is not None else settings.database_busy_timeout
        self._echo = settings.debug if echo is None else echo
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the database engine."""
        if self._engine is None:
            url = make_url(self._database_url)
            connect_args: dict[str, Any] = {}
            if url.get_backend_name() == "sqlite":
                if url.database and url.database != ":memory:":
                    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
                connect_args["timeout"] = self._busy_timeout

            self._engine = create_async_engine(
                url,
                echo=self._echo,
                connect_args=connect_args,
            )
            if url.get_backend_name() == "sqlite":
                _install_sqlite_hooks(self._engine)

            logger.info(
                "Database engine created",
                extra={"backend": url.get_backend_name(), "database": url.database},
            )
        return self._engine

    @asynccontextmanager
    async def connect(self) -> AsyncGenerator[StoreConnection, None]:
        """Open a store connection for one logical operation."""
        try:
            conn = await self.engine.connect()
        except SQLAlchemyError as exc:
            logger.error("Could not connect to the store", extra={"error": _describe(exc)})
            raise QueryError(_describe(exc)) from exc
        try:
            yield StoreConnection(conn)
        finally:
            await conn.close()

    async def create_schema(self) -> None:
        """Create tables and indexes that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready", extra={"tables": sorted(Base.metadata.tables)})

    async def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None


async def get_store_connection(request: Request) -> AsyncGenerator[StoreConnection, None]:
    """FastAPI dependency yielding a connection from the application's database."""
    database: Database = request.app.state.database
    async with database.connect() as connection:
        yield connection


__all__ = [
    "Base",
    "Database",
    "ExecutionResult",
    "StoreConnection",
    "get_store_connection",
]
