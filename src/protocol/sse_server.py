"""SSE/HTTP transport MCP server.

Serves the MCP protocol over HTTP Server-Sent Events from a Starlette
application run by uvicorn:

- ``GET /sse``: opens the event stream
- ``POST /sse/messages/``: client-to-server messages
- ``GET /health``: liveness plus pool statistics
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from protocol.base_server import BaseMCPServer

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/sse/messages/"


class SseMCPServer(BaseMCPServer):
    """MCP server using HTTP/SSE transport."""

    def __init__(self, *args, messages_path: str = MESSAGES_PATH, **kwargs):
        super().__init__(*args, **kwargs)
        self.sse_transport = SseServerTransport(messages_path)
        self.messages_path = messages_path
        logger.info(f"SSE MCP server initialized with messages path: {messages_path}")

    async def handle_sse_connection(self, request: Request) -> Response:
        """Hold one SSE session open and run the MCP protocol over it."""
        logger.info(f"Handling SSE connection from {request.client.host if request.client else 'unknown'}")
        async with self.sse_transport.connect_sse(request.scope, request.receive, request._send) as streams:
            await self.server.run(
                streams[0],
                streams[1],
                self.server.create_initialization_options()
            )
        return Response()

    async def health(self, request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "ok",
            "server": self.app_config.server_name,
            "version": self.app_config.server_version,
            "enabledTools": len(self.registry.enabled_names),
            "pools": self.connection_manager.stats()
        })

    def create_asgi_app(self, allowed_origins: Optional[List[str]] = None) -> Starlette:
        """Create the Starlette application with CORS support.

        Args:
            allowed_origins: Origins allowed by CORS. Defaults to the HTTP config.

        Returns:
            ASGI application; pools are closed when it shuts down
        """
        http_config = self.app_config.http
        if allowed_origins is None:
            allowed_origins = http_config.cors_allowed_origins
        if not allowed_origins:
            logger.warning("SSE: ⚠️  CORS_ALLOWED_ORIGINS 未設定，跨來源請求將被拒絕")

        @asynccontextmanager
        async def lifespan(app: Starlette):
            logger.info("🚀 SSE server started")
            yield
            # Shutdown: 關閉所有連線池
            await self.shutdown()
            logger.info("🛑 SSE server stopped")

        middleware = [
            Middleware(
                CORSMiddleware,
                allow_origins=allowed_origins,
                allow_credentials=True,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["Content-Type", "Authorization"],
                max_age=http_config.cors_preflight_max_age,
            )
        ]
        routes = [
            Route("/health", endpoint=self.health, methods=["GET"]),
            Route("/sse", endpoint=self.handle_sse_connection, methods=["GET"]),
            Route("/sse/", endpoint=self.handle_sse_connection, methods=["GET"]),
            Mount(self.messages_path, app=self.sse_transport.handle_post_message),
        ]
        return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)

    async def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Serve the application with uvicorn."""
        host = host or self.app_config.http.host
        port = port or self.app_config.http.port
        logger.info(f"Starting SSE MCP server on {host}:{port}")

        config = uvicorn.Config(
            self.create_asgi_app(),
            host=host,
            port=port,
            log_level=self.app_config.log_level.lower()
        )
        server = uvicorn.Server(config)
        await server.serve()
