"""STDIO transport MCP server."""

import asyncio
import logging
import signal
from typing import Set

from mcp.server.stdio import stdio_server

from protocol.base_server import BaseMCPServer

logger = logging.getLogger(__name__)


class StdioMCPServer(BaseMCPServer):
    """MCP server using STDIO transport."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._signal_tasks: Set[asyncio.Task] = set()

    async def _serve(self):
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )

    async def _on_signal(self, sig: signal.Signals, task: asyncio.Task):
        """Close pools first, then stop the transport."""
        logger.info(f"Received {sig.name}, shutting down")
        await self.shutdown()
        task.cancel()

    def _handle_signal(self, sig: signal.Signals, task: asyncio.Task) -> asyncio.Task:
        """Schedule the shutdown, holding a reference until it finishes."""
        shutdown = asyncio.ensure_future(self._on_signal(sig, task))
        self._signal_tasks.add(shutdown)
        shutdown.add_done_callback(self._signal_tasks.discard)
        return shutdown

    async def run(self):
        """Run the STDIO MCP server until the client disconnects or a signal arrives."""
        logger.info("Starting STDIO MCP server")
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(self._serve())

        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig, task)
                installed.append(sig)
            except NotImplementedError:
                # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
                logger.debug(f"Signal handler for {sig.name} not supported on this platform")

        try:
            await task
        except asyncio.CancelledError:
            logger.info("STDIO transport closed")
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.shutdown()
