"""HTTP surface for the query assistant."""

import logging
import uuid

from aiohttp import web

from civic_rag.errors import CollaboratorUnavailable
from civic_rag.query.coordinator import ResponseCoordinator

logger = logging.getLogger(__name__)


class WebServer:
    """HTTP server exposing the chat endpoint."""

    def __init__(self, coordinator: ResponseCoordinator, port: int = 3000):
        """Initialize web server."""
        self.port = port
        self.coordinator = coordinator
        self.app = web.Application()
        self._setup_routes()
        logger.info(f"Web server initialized on port {port}")

    def _setup_routes(self):
        """Set up HTTP routes."""
        self.app.router.add_get("/", self._handle_health)
        self.app.router.add_get("/health", self._handle_health)
        self.app.router.add_post("/api/chat", self._handle_chat)
        logger.info("Routes configured: /, /health, /api/chat")

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        health = await self.coordinator.health_check()
        sessions = self.coordinator.sessions.stats()
        return web.json_response(
            {
                "status": "healthy" if health["overall"] else "degraded",
                "service": "civic-rag",
                "checks": health,
                "sessions": sessions,
            }
        )

    async def _handle_chat(self, request: web.Request) -> web.Response:
        """
        Handle chat queries.

        Expects JSON: {"message": "...", "sessionId": "..."}
        A missing sessionId starts a new conversation.
        """
        try:
            data = await request.json()
        except ValueError:
            return web.json_response({"success": False, "error": "Invalid JSON body"}, status=400)
        if not isinstance(data, dict):
            return web.json_response({"success": False, "error": "Expected a JSON object"}, status=400)

        message = str(data.get("message") or "").strip()
        if not message:
            return web.json_response({"success": False, "error": "No message provided"}, status=400)
        session_id = str(data.get("sessionId") or uuid.uuid4())

        try:
            response = await self.coordinator.query(message, session_id)
        except CollaboratorUnavailable as e:
            logger.error(f"Chat query failed: {e}")
            return web.json_response(
                {"success": False, "error": "The assistant is temporarily unavailable"},
                status=503,
            )

        return web.json_response({"success": True, "sessionId": session_id, **response.to_dict()})

    async def start(self):
        """Start the web server."""
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, "0.0.0.0", self.port)
        await site.start()
        logger.info(f"Web server started on port {self.port}")
        logger.info(f"Chat endpoint: http://localhost:{self.port}/api/chat")
        return runner

    async def stop(self, runner):
        """Stop the web server."""
        await runner.cleanup()
        logger.info("Web server stopped")
