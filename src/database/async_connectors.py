"""Async PostgreSQL connector with connection pooling."""

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import asyncpg

from core.config import DatabaseConfig
from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionTimeoutError,
    DatabaseConnectionError,
    QueryExecutionError,
    ServerUnreachableError,
)

logger = logging.getLogger(__name__)

_URI_PASSWORD = re.compile(r"(://[^:/@\s]+:)([^@\s]*)(@)")
_KEYWORD_PASSWORD = re.compile(r"(password\s*=\s*)('[^']*'|\S+)", re.IGNORECASE)


def obfuscate_password(connection_string: Optional[str]) -> Optional[str]:
    """Mask the password in a URI or keyword/value connection string."""
    if not connection_string:
        return connection_string
    masked = _URI_PASSWORD.sub(r"\1****\3", connection_string)
    return _KEYWORD_PASSWORD.sub(r"\1****", masked)


def validate_connection_string(connection_string: str):
    """Reject strings asyncpg cannot use as a DSN, without any network I/O.

    Raises:
        ConfigurationError: If the string is not a postgres:// or
            postgresql:// URI, or its port is not a number
    """
    target = obfuscate_password(connection_string)
    try:
        parsed = urlparse(connection_string)
        parsed.port  # non-numeric or out-of-range port raises ValueError
    except ValueError as e:
        raise ConfigurationError(f"Invalid connection string ({target}): {e}", {"connection": target}) from e
    if parsed.scheme not in ("postgres", "postgresql"):
        raise ConfigurationError(
            f"Invalid connection string ({target}): expected a postgresql:// URI",
            {"connection": target}
        )


def classify_connection_error(error: BaseException, connection_string: str) -> DatabaseConnectionError:
    """Map a low-level connect failure onto the connection error taxonomy.

    Args:
        error: Exception raised while opening a pool or acquiring a connection
        connection_string: Connection string being used (masked in messages)

    Returns:
        ServerUnreachableError, AuthenticationError, ConnectionTimeoutError
        or a plain DatabaseConnectionError when nothing more specific fits
    """
    target = obfuscate_password(connection_string)
    details = {"connection": target, "cause": type(error).__name__}
    reason = obfuscate_password(str(error)) or type(error).__name__

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ConnectionTimeoutError(f"Timed out connecting to database ({target})", details)
    if isinstance(error, (asyncpg.exceptions.InvalidPasswordError,
                          asyncpg.exceptions.InvalidAuthorizationSpecificationError)):
        return AuthenticationError(f"Authentication rejected: {reason}", details)
    if isinstance(error, (OSError,
                          asyncpg.exceptions.CannotConnectNowError,
                          asyncpg.exceptions.PostgresConnectionError)):
        return ServerUnreachableError(f"Cannot reach database server: {reason}", details)
    return DatabaseConnectionError(f"Failed to connect to database: {reason}", details)


def _execution_error(error: Exception) -> QueryExecutionError:
    sqlstate = getattr(error, "sqlstate", None)
    details = {"sqlstate": sqlstate} if sqlstate else {}
    detail = getattr(error, "detail", None)
    if detail:
        details["detail"] = detail
    return QueryExecutionError(str(error), sqlstate=sqlstate, details=details)


class AsyncPostgreSQLConnector:
    """Owns one asyncpg pool for one connection string."""

    def __init__(self, connection_string: str, config: Optional[DatabaseConfig] = None):
        self.connection_string = connection_string
        self.config = config or DatabaseConfig()
        self._pool: Optional[asyncpg.Pool] = None
        self._closed = False

    @property
    def display_name(self) -> str:
        """Connection string with the password masked, safe for logs."""
        return obfuscate_password(self.connection_string)

    async def initialize_pool(self):
        """Initialize asyncpg connection pool.

        Raises:
            ConfigurationError: If the connection string is malformed
            DatabaseConnectionError: If the server cannot be reached,
                rejects authentication, or the connect times out
        """
        validate_connection_string(self.connection_string)
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.connection_string,
                min_size=self.config.pool_min_size,
                max_size=self.config.pool_max_size,
                command_timeout=self.config.command_timeout,
                timeout=self.config.connect_timeout
            )
        except (asyncpg.exceptions.ClientConfigurationError, ValueError) as e:
            target = self.display_name
            logger.error(f"Invalid connection settings for {target}: {obfuscate_password(str(e))}")
            raise ConfigurationError(
                f"Invalid connection settings for {target}: {obfuscate_password(str(e))}",
                {"connection": target}
            ) from e
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Failed to initialize PostgreSQL pool for {self.display_name}: {e}")
            raise classify_connection_error(e, self.connection_string) from e

        self._closed = False
        logger.info(
            f"✅ PostgreSQL connection pool initialized for {self.display_name} "
            f"(size: {self.config.pool_min_size}-{self.config.pool_max_size})"
        )

    async def acquire(self) -> asyncpg.Connection:
        """Acquire a raw connection from the pool, creating the pool if needed."""
        if self._pool is None:
            await self.initialize_pool()
        try:
            return await self._pool.acquire(timeout=self.config.connect_timeout)
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise classify_connection_error(e, self.connection_string) from e

    async def release(self, conn: asyncpg.Connection):
        """Return a raw connection to the pool."""
        if self._pool is not None:
            await self._pool.release(conn)

    @asynccontextmanager
    async def get_connection(self):
        """Get connection from pool, released on every exit path."""
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)

    def pool_stats(self) -> Dict[str, Any]:
        """Current pool sizing, for monitoring output."""
        if self._pool is None:
            return {"initialized": False}
        return {
            "initialized": True,
            "size": self._pool.get_size(),
            "idle": self._pool.get_idle_size(),
            "min_size": self._pool.get_min_size(),
            "max_size": self._pool.get_max_size()
        }

    async def close(self):
        """Close connection pool. Safe to call more than once."""
        if self._pool is None or self._closed:
            return
        self._closed = True
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info(f"PostgreSQL connection pool closed for {self.display_name}")


class ConnectionHandle:
    """A pooled connection checked out for the duration of one tool call.

    Every statement goes through positional parameter binding; database
    errors are re-raised as QueryExecutionError with the server message.
    """

    def __init__(self, connection: asyncpg.Connection, connector: AsyncPostgreSQLConnector):
        self._conn = connection
        self.connector = connector
        self.released = False

    @property
    def connection_string(self) -> str:
        return self.connector.connection_string

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a statement and return its rows as dictionaries."""
        try:
            rows = await self._conn.fetch(sql, *(params or []))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.debug(f"Query failed: {e} | {sql[:200]}")
            raise _execution_error(e) from e
        return [dict(row) for row in rows]

    async def query_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Run a statement and return its first row, or None."""
        rows = await self.query(sql, params)
        return rows[0] if rows else None

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> str:
        """Run a statement and return the command status tag (e.g. ``CREATE FUNCTION``)."""
        try:
            return await self._conn.execute(sql, *(params or []))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.debug(f"Statement failed: {e} | {sql[:200]}")
            raise _execution_error(e) from e

    async def execute_many(self, sql: str, rows: Sequence[Sequence[Any]]):
        """Run one statement once per parameter row."""
        try:
            await self._conn.executemany(sql, rows)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise _execution_error(e) from e

    @asynccontextmanager
    async def transaction(self, readonly: bool = False):
        """Run the enclosed statements atomically, rolling back on error."""
        try:
            async with self._conn.transaction(readonly=readonly):
                yield self
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise _execution_error(e) from e

    async def release(self):
        """Return the connection to its pool. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        await self.connector.release(self._conn)
