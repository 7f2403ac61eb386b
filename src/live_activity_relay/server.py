"""HTTP surface for the relay.

Endpoints:
    POST /send_live_activity  fan a live activity update out to its targets
    GET  /health              service status
    GET  /live                liveness probe
    GET  /metrics             Prometheus metrics
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import time
from typing import TYPE_CHECKING, Any

import pydantic
from aiohttp import web
from prometheus_client import generate_latest

from live_activity_relay.errors import (
    ConfigError,
    ContentNotFound,
    RelayError,
    StoreError,
    ValidationError,
)
from live_activity_relay.schemas import LiveActivityRequest

if TYPE_CHECKING:
    from live_activity_relay.service import LiveActivityService

logger = logging.getLogger(__name__)

SUCCESS_BODY = "Live activity sent successfully"

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def _error(status: int, message: str, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


class RelayServer:
    """aiohttp application wrapping a LiveActivityService.

    Example:
        ```python
        server = RelayServer(service)
        await server.start(host="127.0.0.1", port=11115)
        ...
        await server.stop()
        ```
    """

    def __init__(self, service: LiveActivityService) -> None:
        """Initialize the server.

        Args:
            service: Pipeline that handles each send request.
        """
        self.service = service
        self._start_time = time.time()
        self._batches_completed = 0
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    async def _handle_send(self, request: web.Request) -> web.Response:
        """Handle POST /send_live_activity.

        Responds 200 once every target has been attempted, even if some
        failed; failures are only logged.
        """
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Request body must be UTF-8 JSON")

        try:
            payload = LiveActivityRequest.model_validate(body)
        except pydantic.ValidationError as e:
            errors = [
                {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            return _error(400, "Invalid request", details=errors)

        try:
            report = await self.service.send_live_activity(payload)
        except ValidationError as e:
            logger.warning("Rejected request: %s", e)
            return _error(400, str(e))
        except ContentNotFound as e:
            logger.warning("Rejected request: %s", e)
            return _error(404, str(e))
        except ConfigError as e:
            logger.error("Configuration error: %s", e)
            return _error(500, "Relay is not configured for delivery")
        except StoreError as e:
            logger.error("Store error: %s", e)
            return _error(500, "Content store unavailable")
        except RelayError as e:
            logger.exception("Unexpected relay error: %s", e)
            return _error(500, "Internal error")

        self._batches_completed += 1
        if report.failure_count:
            logger.warning(
                "Batch finished with %d/%d failed targets",
                report.failure_count,
                len(report.outcomes),
            )
        return web.Response(text=SUCCESS_BODY)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        return web.json_response(
            {
                "status": "healthy",
                "uptime_seconds": time.time() - self._start_time,
                "batches_completed": self._batches_completed,
                "store": self.service.has_store,
                "dry_run": self.service.settings.dry_run,
            }
        )

    async def _handle_live(self, _request: web.Request) -> web.Response:
        """Handle /live endpoint for k8s liveness probe."""
        return web.json_response({"live": True})

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_post("/send_live_activity", self._handle_send)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/live", self._handle_live)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self, host: str, port: int) -> None:
        """Start serving on host:port."""
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info("Live activity relay listening on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the HTTP server and release the service."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("HTTP server stopped")
        await self.service.close()


async def serve(server: RelayServer, host: str, port: int) -> None:
    """Run the server until SIGTERM or SIGINT."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, ValueError, OSError) as e:
            logger.warning("Could not install handler for %s: %s", sig.name, e)

    await server.start(host, port)
    try:
        await stop_event.wait()
        logger.info("Shutdown signal received, stopping server...")
    finally:
        for sig in SHUTDOWN_SIGNALS:
            with contextlib.suppress(NotImplementedError, ValueError, OSError):
                loop.remove_signal_handler(sig)
        await server.stop()
