"""Base MCP server - Transport-agnostic MCP protocol implementation.

Holds the tool registry, the connection manager and the connection string
resolver, and exposes them through an ``mcp`` low-level ``Server``. The
STDIO and SSE servers only add a transport on top.
"""

import logging
from typing import Any, Dict, List, Optional

from mcp.server.lowlevel import Server
from mcp.types import CallToolResult, Tool

from core.config import AppConfig, ConnectionStringResolver
from core.error_handling import format_error_response
from core.exceptions import PostgresMCPError, ToolExecutionError
from database.async_manager import AsyncConnectionManager
from tools.base import ToolContext
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class BaseMCPServer:
    """Base MCP server providing core protocol functionality.

    This class encapsulates the MCP protocol logic independent of
    the transport mechanism (STDIO, HTTP/SSE, etc.).
    """

    def __init__(
        self,
        registry: ToolRegistry,
        connection_manager: AsyncConnectionManager,
        resolver: ConnectionStringResolver,
        app_config: Optional[AppConfig] = None
    ):
        """Initialize base MCP server.

        Args:
            registry: Registered tools with the enabled subset already applied
            connection_manager: Owner of every connection pool
            resolver: Connection string precedence (argument, CLI, environment)
            app_config: Application configuration (defaults to environment)
        """
        self.registry = registry
        self.connection_manager = connection_manager
        self.resolver = resolver
        self.app_config = app_config or AppConfig.from_env()
        self.context = ToolContext(
            connection_manager,
            resolver,
            include_stacktrace=self.app_config.include_stacktrace
        )
        self._shut_down = False

        self.server = Server(self.app_config.server_name, version=self.app_config.server_version)
        self._setup_handlers()
        logger.info(
            f"Initialized {self.app_config.server_name} MCP server with "
            f"{len(registry.enabled_names)} enabled tool(s)"
        )

    def list_tools(self) -> List[Tool]:
        """Descriptors of the enabled tools only."""
        return self.registry.list_tools()

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> CallToolResult:
        """
        Dispatch one tool call.

        Always returns an envelope: lookup misses and taxonomy errors come
        back as error envelopes, and any other exception is wrapped as a
        tool execution failure so it never reaches the transport.
        """
        include_stacktrace = self.app_config.include_stacktrace
        try:
            handler = self.registry.get_tool(name)
            return await handler.run(arguments, self.context)
        except PostgresMCPError as e:
            return format_error_response(e, include_stacktrace)
        except Exception as e:
            logger.error(f"❌ Unexpected error executing tool {name}: {e}", exc_info=True)
            error = ToolExecutionError(f"Error executing tool {name}: {e}", {"tool": name})
            return format_error_response(error, include_stacktrace)

    def _setup_handlers(self):
        """Setup MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            """List enabled tools."""
            return self.list_tools()

        # Argument validation belongs to each tool so that every missing
        # field is reported in one envelope.
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict) -> CallToolResult:
            """Handle tool execution."""
            return await self.call_tool(name, arguments)

        @self.server.list_prompts()
        async def list_prompts():
            """List available prompts (currently none)."""
            return []

        @self.server.list_resources()
        async def list_resources():
            """List available resources (currently none)."""
            return []

    async def shutdown(self):
        """Close every connection pool. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down: closing connection pools")
        await self.connection_manager.cleanup_all()
