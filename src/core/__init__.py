"""Core modules for the PostgreSQL MCP server."""

from .exceptions import (
    PostgresMCPError,
    ConfigurationError,
    DuplicateToolError,
    DatabaseConnectionError,
    ServerUnreachableError,
    AuthenticationError,
    ConnectionTimeoutError,
    ToolValidationError,
    UnknownOperationError,
    MissingArgumentError,
    InvalidIdentifierError,
    QueryExecutionError,
    ToolNotFoundError,
    ToolExecutionError
)

__all__ = [
    "PostgresMCPError",
    "ConfigurationError",
    "DuplicateToolError",
    "DatabaseConnectionError",
    "ServerUnreachableError",
    "AuthenticationError",
    "ConnectionTimeoutError",
    "ToolValidationError",
    "UnknownOperationError",
    "MissingArgumentError",
    "InvalidIdentifierError",
    "QueryExecutionError",
    "ToolNotFoundError",
    "ToolExecutionError"
]
