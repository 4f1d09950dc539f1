"""Result envelope formatting for MCP tool calls.

Every tool call resolves to exactly one ``CallToolResult``: text content
blocks plus an ``isError`` flag. Errors are values at this boundary, so the
helpers here never raise.
"""

import json
import logging
import traceback
from typing import Any, Awaitable, Callable, Dict, Optional

from mcp.types import CallToolResult, TextContent

from core.exceptions import PostgresMCPError

logger = logging.getLogger(__name__)


def json_default(value: Any) -> str:
    """Fallback for values json cannot encode.

    bytea values use PostgreSQL's hex input form (``\\x0001``) so they can
    be fed back into a bytea column; dates, decimals and UUIDs use ``str``.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    return str(value)


def to_json(data: Any) -> str:
    """Serialize tool output."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=json_default)


def text_result(text: str, is_error: bool = False) -> CallToolResult:
    """Wrap a single text block into a result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=text)],
        isError=is_error
    )


def format_error_response(
    error: Exception,
    include_stacktrace: bool = False,
    context: Optional[Dict[str, Any]] = None
) -> CallToolResult:
    """Format an exception as an error envelope.

    Args:
        error: The exception that occurred
        include_stacktrace: Whether to append the stack trace (for debugging)
        context: Additional context information

    Returns:
        CallToolResult with ``isError=True`` and text ``Error: <message>``
    """
    if isinstance(error, PostgresMCPError):
        error_message = error.message
        error_kind = error.error_kind
    else:
        error_message = str(error) or type(error).__name__
        error_kind = type(error).__name__

    error_text = f"Error: {error_message}"

    if include_stacktrace:
        error_text += f"\n\nStack trace:\n{traceback.format_exc()}"

    if context:
        error_text += f"\n\nContext: {context}"

    logger.warning(f"{error_kind}: {error_message}")

    return text_result(error_text, is_error=True)


def format_success_response(data: Any) -> CallToolResult:
    """Format tool output as a success envelope.

    Strings pass through untouched, envelopes are returned as-is and
    everything else is rendered as indented JSON.
    """
    if isinstance(data, CallToolResult):
        return data

    if isinstance(data, str):
        text = data
    else:
        text = to_json(data)

    return text_result(text)


async def safe_execute_async(
    func: Callable[[], Awaitable[Any]],
    include_stacktrace: bool = False,
    context: Optional[Dict[str, Any]] = None
) -> CallToolResult:
    """Safely execute an async function and return an envelope.

    Args:
        func: Async function to execute
        include_stacktrace: Include stacktrace in error responses
        context: Additional context for error reporting

    Returns:
        Formatted success or error envelope
    """
    try:
        result = await func()
        return format_success_response(result)
    except PostgresMCPError as e:
        return format_error_response(e, include_stacktrace, context)
