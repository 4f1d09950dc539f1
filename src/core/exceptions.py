"""Custom exceptions for the PostgreSQL MCP server.

Every exception here carries an ``error_kind`` that maps it onto the
error taxonomy surfaced to clients: ConfigurationError, ConnectionError,
ValidationError, ExecutionError and ToolNotFound, plus the finer
UnknownOperation / MissingArgument / ToolExecutionFailed kinds.
"""

from typing import Any, Dict, List, Optional, Sequence


class PostgresMCPError(Exception):
    """Base exception for all PostgreSQL MCP server errors."""

    error_kind = "Error"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error": self.__class__.__name__,
            "kind": self.error_kind,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(PostgresMCPError):
    """Exception raised when configuration is invalid or missing."""

    error_kind = "ConfigurationError"


class DuplicateToolError(ConfigurationError):
    """Exception raised when two tools are registered under one name."""

    def __init__(self, tool_name: str):
        super().__init__(
            f"Tool '{tool_name}' is registered more than once",
            {"tool": tool_name}
        )
        self.tool_name = tool_name


class DatabaseConnectionError(PostgresMCPError):
    """Exception raised when the database cannot be reached."""

    error_kind = "ConnectionError"


class ServerUnreachableError(DatabaseConnectionError):
    """The server refused the connection or could not be resolved."""


class AuthenticationError(DatabaseConnectionError):
    """The server rejected the supplied credentials."""


class ConnectionTimeoutError(DatabaseConnectionError):
    """Connecting to the server took longer than the configured timeout."""


class ToolValidationError(PostgresMCPError):
    """Exception raised when tool arguments fail validation."""

    error_kind = "ValidationError"

    def __init__(self, message: str, problems: Optional[List[str]] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.problems = list(problems or [])


class UnknownOperationError(ToolValidationError):
    """The ``operation`` discriminant is outside the tool's operation set."""

    error_kind = "UnknownOperation"

    def __init__(self, operation: Any, valid_operations: Sequence[str]):
        self.operation = operation
        self.valid_operations = list(valid_operations)
        supported = ", ".join(self.valid_operations)
        super().__init__(
            f'Unknown operation "{operation}". Supported operations: {supported}',
            details={"operation": operation, "supported": self.valid_operations}
        )


class MissingArgumentError(ToolValidationError):
    """One or more arguments required by the selected operation are absent."""

    error_kind = "MissingArgument"

    def __init__(self, missing: Sequence[str], operation: Optional[str] = None, hint: Optional[str] = None):
        self.missing = list(missing)
        self.operation = operation
        fields = ", ".join(self.missing)
        if operation:
            message = f"Missing required parameters for {operation} operation: {fields}"
        else:
            message = f"Missing required parameters: {fields}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message, problems=self.missing, details={"missing": self.missing})


class InvalidIdentifierError(ToolValidationError):
    """A value cannot be used as an SQL identifier."""


class QueryExecutionError(PostgresMCPError):
    """Exception raised when the database rejects a statement."""

    error_kind = "ExecutionError"

    def __init__(self, message: str, sqlstate: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.sqlstate = sqlstate


class ToolNotFoundError(PostgresMCPError):
    """Exception raised when a tool name is not in the enabled tool set."""

    error_kind = "ToolNotFound"

    def __init__(self, tool_name: str, registered: bool = False):
        self.tool_name = tool_name
        self.registered = registered
        if registered:
            message = f'Tool "{tool_name}" is available but not enabled by the current server configuration.'
        else:
            message = f"Tool '{tool_name}' is not enabled or does not exist."
        super().__init__(message, {"tool": tool_name, "registered": registered})


class ToolExecutionError(PostgresMCPError):
    """Exception raised when a tool fails with an unexpected error."""

    error_kind = "ToolExecutionFailed"
