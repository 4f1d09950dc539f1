"""Database connection management for the PostgreSQL MCP server."""

from .async_connectors import AsyncPostgreSQLConnector, ConnectionHandle, obfuscate_password
from .async_manager import AsyncConnectionManager

__all__ = [
    "AsyncPostgreSQLConnector",
    "AsyncConnectionManager",
    "ConnectionHandle",
    "obfuscate_password"
]
