"""Connection manager: one shared pool per connection string."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from core.config import DatabaseConfig
from database.async_connectors import AsyncPostgreSQLConnector, ConnectionHandle, obfuscate_password

logger = logging.getLogger(__name__)


class AsyncConnectionManager:
    """
    Owns the lifecycle of every database pool the server opens.

    Pools are created lazily the first time a connection string is used and
    are shared by every later caller with the same string until
    ``remove()`` or ``cleanup_all()``. Concurrent acquisition is delegated
    to the asyncpg pool; the manager only serializes pool creation,
    separately for each connection string.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self._connectors: Dict[str, AsyncPostgreSQLConnector] = {}
        self._lock = asyncio.Lock()
        self._creation_locks: Dict[str, asyncio.Lock] = {}

    @property
    def pool_count(self) -> int:
        return len(self._connectors)

    def has_pool(self, connection_string: str) -> bool:
        return connection_string in self._connectors

    def _create_connector(self, connection_string: str) -> AsyncPostgreSQLConnector:
        return AsyncPostgreSQLConnector(connection_string, self.config)

    async def get_connector(self, connection_string: str) -> AsyncPostgreSQLConnector:
        """
        Return the pooled connector for a connection string, creating it on first use.

        A pool that fails to initialize is not cached, so the next call
        retries from scratch.

        Raises:
            DatabaseConnectionError: If the pool cannot be created
        """
        connector = self._connectors.get(connection_string)
        if connector is not None:
            return connector

        creation_lock = self._creation_locks.setdefault(connection_string, asyncio.Lock())
        async with creation_lock:
            connector = self._connectors.get(connection_string)
            if connector is None:
                connector = self._create_connector(connection_string)
                await connector.initialize_pool()
                async with self._lock:
                    self._connectors[connection_string] = connector
                logger.debug(f"Pool registered for {obfuscate_password(connection_string)}")
        return connector

    async def connect(self, connection_string: str) -> ConnectionHandle:
        """
        Acquire a connection handle for a connection string.

        Callers own the handle and must pass it to ``disconnect()``; prefer
        the ``connection()`` context manager which does so on every path.
        """
        connector = await self.get_connector(connection_string)
        raw = await connector.acquire()
        return ConnectionHandle(raw, connector)

    async def disconnect(self, handle: ConnectionHandle):
        """Release a handle back to its pool without closing the pool."""
        await handle.release()

    @asynccontextmanager
    async def connection(self, connection_string: str):
        """Scoped acquisition: connect, yield the handle, always release."""
        handle = await self.connect(connection_string)
        try:
            yield handle
        finally:
            await self.disconnect(handle)

    async def query(self, connection_string: str, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement on a short-lived handle and return its rows."""
        async with self.connection(connection_string) as handle:
            return await handle.query(sql, params)

    async def remove(self, connection_string: str):
        """Close and forget the pool for one connection string."""
        async with self._lock:
            connector = self._connectors.pop(connection_string, None)
        if connector is not None:
            await connector.close()

    async def cleanup_all(self):
        """
        Close every pool. Idempotent: a second call finds nothing to close.

        Shutdown is a best-effort drain: a pool that fails to close is
        logged and the remaining pools are still closed.
        """
        async with self._lock:
            connectors = list(self._connectors.values())
            self._connectors.clear()

        if not connectors:
            return

        for connector in connectors:
            try:
                await connector.close()
            except Exception as e:
                logger.error(f"Error closing pool for {connector.display_name}: {e}")

        logger.info(f"Closed {len(connectors)} PostgreSQL connection pool(s)")

    def stats(self) -> Dict[str, Any]:
        """Pool sizing for every open pool, keyed by masked connection string."""
        return {
            connector.display_name: connector.pool_stats()
            for connector in self._connectors.values()
        }
