"""MCP tools package for the PostgreSQL admin server."""

from tools.base import OperationResult, ToolContext, ToolHandler
from tools.definitions import ALL_TOOL_NAMES
from tools.registry import ToolRegistry
from tools.router import Operation, OperationRouter
from tools.validators import InputValidator, quote_identifier

__all__ = [
    'OperationResult',
    'ToolContext',
    'ToolHandler',
    'ToolRegistry',
    'ALL_TOOL_NAMES',
    'Operation',
    'OperationRouter',
    'InputValidator',
    'quote_identifier',
]
