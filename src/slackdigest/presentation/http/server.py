"""HTTP server for health checks and manual digest runs."""

import json
from datetime import datetime

import structlog
from aiohttp import web

from slackdigest.application.services.scheduler import DigestScheduler
from slackdigest.config.models import ServerConfig
from slackdigest.domain.timestamps import TimeWindow


class HTTPServer:
    """HTTP server for triggering digest runs and health checks.

    This server provides endpoints for:
    - POST /api/v1/runs: Start a digest run (202, or 409 while one is active)
    - GET /healthz: Kubernetes liveness probe

    Args:
        config: Server configuration containing host and port.
        scheduler: DigestScheduler owning the run slot.
        logger: Structured logger for logging.
    """

    def __init__(
        self,
        config: ServerConfig,
        scheduler: DigestScheduler,
        logger: structlog.BoundLogger,
    ) -> None:
        self.config = config
        self._scheduler = scheduler
        self._logger = logger
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the server is running."""
        return self._site is not None

    @property
    def actual_port(self) -> int:
        """Return the actual port the server is listening on.

        This is useful when port 0 is configured to get a random port.

        Raises:
            RuntimeError: If the server is not running.
        """
        if self._site is None:
            raise RuntimeError("Server is not running")
        # Access internal server via getattr to avoid type checker issues
        # with aiohttp's internal implementation
        server = getattr(self._site, "_server", None)
        if server is None:
            raise RuntimeError("Server is not running")
        sockets = getattr(server, "sockets", None)
        if sockets:
            return sockets[0].getsockname()[1]
        raise RuntimeError("No sockets available")

    def create_app(self) -> web.Application:
        """Create and return the aiohttp Application.

        This method is exposed for testing purposes.

        Returns:
            Configured aiohttp Application.
        """
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health_check)
        app.router.add_post("/api/v1/runs", self._handle_run)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()
        self._logger.info(
            "HTTP server started",
            host=self.config.host,
            port=self.actual_port,
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            self._app = None
            self._logger.info("HTTP server stopped")

    async def _handle_health_check(self, request: web.Request) -> web.Response:
        """Handle GET /healthz requests."""
        return web.json_response(
            {"status": "ok", "run_active": self._scheduler.is_running}
        )

    async def _handle_run(self, request: web.Request) -> web.Response:
        """Handle POST /api/v1/runs requests.

        The body is optional. When given it may carry "start" and "end" ISO
        8601 timestamps selecting the window; otherwise the last closed
        scheduled window is used.

        Args:
            request: The incoming request.

        Returns:
            202 with the window when the run started, 409 if a run is active.
        """
        body: dict = {}
        if request.can_read_body:
            try:
                body = await request.json()
            except json.JSONDecodeError:
                return web.json_response({"error": "Invalid JSON"}, status=400)
            if not isinstance(body, dict):
                return web.json_response(
                    {"error": "Body must be a JSON object"}, status=400
                )

        try:
            window = self._parse_window(body)
        except ValueError as e:
            return web.json_response({"error": str(e)}, status=400)

        if window is None:
            window = self._scheduler.window_for()

        task = self._scheduler.start_run(window)
        if task is None:
            return web.json_response({"error": "Run already in progress"}, status=409)

        self._logger.info(
            "Manual digest run started",
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
        )
        return web.json_response(
            {
                "status": "started",
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
            },
            status=202,
        )

    @staticmethod
    def _parse_window(body: dict) -> TimeWindow | None:
        start, end = body.get("start"), body.get("end")
        if start is None and end is None:
            return None
        if start is None or end is None:
            raise ValueError("Both start and end are required")
        try:
            return TimeWindow(
                start=datetime.fromisoformat(start), end=datetime.fromisoformat(end)
            )
        except TypeError as e:
            raise ValueError(f"Invalid window: {e}") from e
