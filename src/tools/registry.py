"""Tool registry: the fixed tool set and its enabled subset."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from mcp.types import Tool

from core.exceptions import DuplicateToolError, ToolNotFoundError
from tools.base import ToolHandler

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Central registry for MCP tool handlers.

    The registered set is fixed at construction. The enabled set is
    derived from it by an optional allow-list and can be re-derived with
    ``apply_allow_list``; tool calls never change it.
    """

    def __init__(self, handlers: Iterable[ToolHandler], enabled_tools: Optional[Sequence[str]] = None):
        self._handlers: Tuple[ToolHandler, ...] = ()
        self.handlers: Dict[str, ToolHandler] = {}
        self._register_handlers(handlers)

        self._enabled: Tuple[ToolHandler, ...] = self._handlers
        self._enabled_index: Dict[str, ToolHandler] = dict(self.handlers)
        self.apply_allow_list(enabled_tools)

    def _register_handlers(self, handlers: Iterable[ToolHandler]):
        """Register all tool handlers, failing fast on duplicate names."""
        ordered: List[ToolHandler] = []
        for handler in handlers:
            if handler.name in self.handlers:
                raise DuplicateToolError(handler.name)
            self.handlers[handler.name] = handler
            ordered.append(handler)
            logger.debug(f"Registered {handler.name} -> {handler.__class__.__name__}")

        self._handlers = tuple(ordered)
        logger.info(f"✅ Registered {len(self._handlers)} MCP tools")

    def apply_allow_list(self, enabled_tools: Optional[Sequence[str]] = None) -> List[str]:
        """
        Derive the enabled tool set.

        Args:
            enabled_tools: Tool names to enable; None enables every tool

        Returns:
            Names in the allow-list that are not registered (also logged as warnings)
        """
        if enabled_tools is None:
            self._enabled = self._handlers
            self._enabled_index = dict(self.handlers)
            return []

        wanted = set(enabled_tools)
        unknown = [name for name in dict.fromkeys(enabled_tools) if name not in self.handlers]
        for name in unknown:
            logger.warning(f"⚠️ Tool '{name}' listed in tools config is not a known tool and will be ignored")

        self._enabled = tuple(h for h in self._handlers if h.name in wanted)
        self._enabled_index = {h.name: h for h in self._enabled}
        logger.info(f"Enabled {len(self._enabled)} of {len(self._handlers)} tools: {', '.join(self.enabled_names)}")
        return unknown

    @property
    def registered_names(self) -> List[str]:
        return [h.name for h in self._handlers]

    @property
    def enabled_names(self) -> List[str]:
        return [h.name for h in self._enabled]

    def list_tools(self) -> List[Tool]:
        """Descriptors of the enabled tools, in registration order."""
        return [handler.to_tool() for handler in self._enabled]

    def get_tool(self, tool_name: str) -> ToolHandler:
        """
        Look up an enabled tool.

        Raises:
            ToolNotFoundError: If the tool is disabled or was never registered;
                the message tells the two cases apart
        """
        handler = self._enabled_index.get(tool_name)
        if handler is None:
            raise ToolNotFoundError(tool_name, registered=self.is_tool_registered(tool_name))
        return handler

    def is_tool_registered(self, tool_name: str) -> bool:
        """Check if a tool exists, enabled or not."""
        return tool_name in self.handlers

    def is_tool_enabled(self, tool_name: str) -> bool:
        """Check if a tool can be dispatched."""
        return tool_name in self._enabled_index
