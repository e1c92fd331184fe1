from __future__ import annotations

import contextlib
import logging
import os
from abc import ABCMeta
from collections.abc import AsyncIterator
from contextvars import ContextVar
from typing import Any, Self, cast

from pydantic import TypeAdapter
from sqlalchemy import MetaData, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from oauth21.core.extensions import select_from_group
from oauth21.core.settings import SqlalchemyDsn
from oauth21.db.exceptions import DBUnavailableError

logger = logging.getLogger(__name__)

DB_URL_ENV_PREFIX = "OAUTH21_DB_URL_"
IN_MEMORY_SQLITE_URL = "sqlite+aiosqlite:///:memory:"

# Connections are recycled before MySQL drops them (wait_timeout is 8h,
# but proxies in front of it are often far less patient)
POOL_RECYCLE_SECONDS = 30 * 60
# How long an SQLite writer waits for the database lock
SQLITE_BUSY_TIMEOUT_SECONDS = 30


class SQLDBUnavailableError(DBUnavailableError):
    """The database could not be reached or stopped answering."""


class BaseSQLDB(metaclass=ABCMeta):
    """Base class of the SQL stores.

    Implementations are registered under the ``oauth21.dbs.sql`` entry point
    group and their URL is read from ``OAUTH21_DB_URL_<NAME>``.

    Two nested contexts are involved. ``engine_context`` owns the engine and
    its connection pool for the lifetime of the application. Entering the
    object itself (``async with db:``) opens a connection and a transaction
    which is committed when the block exits cleanly and rolled back when it
    raises. The connection lives in a ``ContextVar`` so that concurrent
    requests served by the same object never share a transaction.

    ```python
    db = OAuthDB(BaseSQLDB.available_urls()["OAuthDB"])
    async with db.engine_context():
        async with db:
            await db.insert_client("my-client")
    ```
    """

    metadata: MetaData

    def __init__(self, db_url: str) -> None:
        self._conn: ContextVar[AsyncConnection | None] = ContextVar(
            "_conn", default=None
        )
        self._db_url = db_url
        self._engine: AsyncEngine | None = None

    @classmethod
    def available_implementations(cls, db_name: str) -> list[type[BaseSQLDB]]:
        """Classes registered for ``db_name``, the preferred one first."""
        db_classes: list[type[BaseSQLDB]] = [
            entry_point.load()
            for entry_point in select_from_group(group="oauth21.dbs.sql", name=db_name)
        ]
        if not db_classes:
            raise NotImplementedError(f"Could not find any matches for {db_name=}")
        return db_classes

    @classmethod
    def available_urls(cls) -> dict[str, str]:
        """Map each registered DB name to the URL configured in the environment.

        DBs without a ``OAUTH21_DB_URL_<NAME>`` variable are left out.
        """
        db_urls: dict[str, str] = {}
        for entry_point in select_from_group(group="oauth21.dbs.sql"):
            db_url = os.environ.get(f"{DB_URL_ENV_PREFIX}{entry_point.name.upper()}")
            if db_url is None:
                continue
            if db_url != IN_MEMORY_SQLITE_URL:
                try:
                    db_url = str(TypeAdapter(SqlalchemyDsn).validate_python(db_url))
                except Exception:
                    logger.error("Invalid URL for %s", entry_point.name)
                    raise
            db_urls[entry_point.name] = db_url
        return db_urls

    @classmethod
    def transaction(cls) -> Self:
        """Placeholder dependency, overridden by the application factory."""
        raise NotImplementedError("This should never be called")

    @property
    def engine(self) -> AsyncEngine:
        """Only available within ``engine_context``."""
        assert self._engine is not None, "engine_context must be entered"
        return self._engine

    def _engine_kwargs(self) -> dict[str, Any]:
        if self._db_url.startswith("sqlite"):
            # Concurrent writers queue on the file lock rather than failing
            # straight away with "database is locked"
            return {"connect_args": {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}}
        return {"pool_recycle": POOL_RECYCLE_SECONDS}

    @contextlib.asynccontextmanager
    async def engine_context(self) -> AsyncIterator[None]:
        """Create the engine, and dispose of it on exit.

        Entered once per process, at application startup.
        """
        assert self._engine is None, "engine_context cannot be nested"

        engine = create_async_engine(self._db_url, **self._engine_kwargs())
        self._engine = engine
        try:
            yield
        finally:
            self._engine = None
            await engine.dispose()

    @property
    def conn(self) -> AsyncConnection:
        conn = self._conn.get()
        if conn is None:
            raise RuntimeError(f"{self.__class__} was used before entering")
        return cast(AsyncConnection, conn)

    async def __aenter__(self) -> Self:
        assert self._conn.get() is None, "BaseSQLDB context cannot be nested"
        try:
            self._conn.set(await self.engine.connect().__aenter__())
        except Exception as e:
            raise SQLDBUnavailableError(
                f"Cannot connect to {self.__class__.__name__}"
            ) from e
        return self

    async def __aexit__(self, exc_type, exc, tb):
        conn = self.conn
        try:
            if exc_type is None:
                await conn.commit()
        finally:
            # Closing the connection rolls back whatever was not committed
            await conn.__aexit__(exc_type, exc, tb)
            self._conn.set(None)

    async def ping(self):
        """:raises: SQLDBUnavailableError if the DB does not answer"""
        try:
            await self.conn.scalar(select(1))
        except OperationalError as e:
            raise SQLDBUnavailableError("Cannot ping the DB") from e
