"""Base classes for MCP tool handlers."""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from mcp.types import CallToolResult, Tool
from pydantic import BaseModel, Field

from core.error_handling import safe_execute_async, text_result, to_json
from database.async_manager import AsyncConnectionManager

logger = logging.getLogger(__name__)


class OperationResult(BaseModel):
    """Normalized outcome of one database operation before it becomes an envelope."""

    success: bool = True
    message: str = ""
    details: Any = Field(default=None)


class ToolContext:
    """What a tool needs from the server: connection string resolution and pooled connections."""

    def __init__(
        self,
        connection_manager: AsyncConnectionManager,
        resolve_connection_string: Callable[[Optional[str]], str],
        include_stacktrace: bool = False
    ):
        self.connection_manager = connection_manager
        self.resolve_connection_string = resolve_connection_string
        self.include_stacktrace = include_stacktrace

    @asynccontextmanager
    async def connection(self, explicit: Optional[str] = None):
        """Resolve the connection string, then hold a pooled handle for the block.

        Resolution happens before any database I/O, so a missing connection
        string fails as a ConfigurationError without touching the network.
        """
        connection_string = self.resolve_connection_string(explicit)
        async with self.connection_manager.connection(connection_string) as handle:
            yield handle


class ToolHandler(ABC):
    """Abstract base class for MCP tool handlers.

    A handler is a tool descriptor: ``name``, ``description`` and
    ``input_schema`` are advertised to clients, ``execute`` does the work.
    """

    name: str = ""
    description: str = ""
    input_schema: Dict[str, Any] = {"type": "object", "properties": {}}

    def to_tool(self) -> Tool:
        """Descriptor as advertised by tools/list (no execution logic)."""
        return Tool(name=self.name, description=self.description, inputSchema=self.input_schema)

    @abstractmethod
    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> CallToolResult:
        """
        Run the tool.

        Args:
            arguments: Raw arguments from the tool call
            context: Connection resolution and pooled connections

        Returns:
            Result envelope

        Raises:
            PostgresMCPError: Any taxonomy error; ``run`` turns it into an envelope
        """

    async def run(self, arguments: Optional[Dict[str, Any]], context: ToolContext) -> CallToolResult:
        """Tool execution boundary: taxonomy errors come back as error envelopes."""
        logger.debug(f"Executing {self.name}")
        return await safe_execute_async(
            lambda: self.execute(arguments or {}, context),
            include_stacktrace=context.include_stacktrace
        )

    def _error_response(self, error_message: str) -> CallToolResult:
        """Create standardized error response."""
        return text_result(f"Error: {error_message}", is_error=True)

    def _success_response(self, text: str) -> CallToolResult:
        """Create standardized success response."""
        return text_result(text)

    def _json_response(self, data: Any) -> CallToolResult:
        """Create success response carrying JSON text."""
        return text_result(to_json(data))

    def _result_response(self, result: OperationResult, returns_rows: bool = False) -> CallToolResult:
        """
        Wrap an OperationResult into an envelope.

        Reads render ``details`` as JSON; writes render the message followed
        by `` Details: <json>``; unsuccessful results become error envelopes.
        """
        if not result.success:
            return self._error_response(result.message)
        if returns_rows:
            return self._json_response(result.details)
        if result.details is None:
            return self._success_response(result.message)
        return self._success_response(f"{result.message} Details: {to_json(result.details)}")
