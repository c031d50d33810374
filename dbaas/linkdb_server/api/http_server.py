"""
HTTP server implementation for LinkDB.

This module provides the JSON REST API:
    POST /data/add        add an entity ({type, id, <fields>})
    POST /data/delete     delete an entity and its dependents ({type, id})
    GET  /data/display    ?type=&id= -> {exists, ...}
    GET  /v1/health       health and store statistics
    GET  /v1/schema       schema definition and fingerprint

Invariants:
    - A successful add, delete or display answers 200
    - A rejected add answers a non-200 status with success=false
    - Delete of an absent entity answers 200 (idempotent)
    - Display of an absent entity answers 200 with exists=false

How to change safely:
    - Keep the /data/* contract stable; existing clients depend on it
    - Add new endpoints under /v1/
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Dict

from aiohttp import web

from ..config import HttpConfig
from .servicer import LinkDbServicer

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[str, int] = {
    "INVALID_ARGUMENT": 400,
    "VALIDATION_ERROR": 400,
    "UNKNOWN_TYPE": 400,
    "INVALID_PAYLOAD": 400,
    "MISSING_REFERENCE": 400,
    "MALFORMED_KEY": 400,
    "DUPLICATE_ENTITY": 409,
    "CASCADE_FAILED": 500,
    "INTERNAL": 500,
}


def status_for(result: Dict[str, Any]) -> int:
    """HTTP status for a servicer result."""
    code = result.get("error_code")
    if code is None:
        return 200
    return ERROR_STATUS.get(code, 400)


def create_http_app(
    servicer: LinkDbServicer,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create an HTTP application for LinkDB.

    Args:
        servicer: LinkDbServicer instance
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application()

    app.router.add_post("/data/add", lambda r: handle_add(r, servicer))
    app.router.add_post("/data/delete", lambda r: handle_delete(r, servicer))
    app.router.add_get("/data/display", lambda r: handle_display(r, servicer))
    app.router.add_get("/v1/health", lambda r: handle_health(r, servicer))
    app.router.add_get("/v1/schema", lambda r: handle_schema(r, servicer))

    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response = web.Response()
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                response = e

        origin = request.headers.get("Origin", "*")
        if "*" in config.cors_origins or origin in config.cors_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response

    app.middlewares.append(cors_middleware)

    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"success": False, "error": str(e), "error_code": "INTERNAL"},
                status=500,
            )

    app.middlewares.insert(0, error_middleware)

    return app


async def read_json_body(request: web.Request) -> Any:
    """Parse the request body as JSON.

    Raises:
        web.HTTPBadRequest: If the body is not valid UTF-8 JSON
    """
    try:
        return await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text=json.dumps(
                {"success": False, "error": "Invalid JSON body", "error_code": "INVALID_ARGUMENT"}
            ),
            content_type="application/json",
        )


async def handle_add(request: web.Request, servicer: LinkDbServicer) -> web.Response:
    """Handle POST /data/add - Add an entity."""
    body = await read_json_body(request)
    result = await servicer.add(body)
    return web.json_response(result, status=status_for(result))


async def handle_delete(request: web.Request, servicer: LinkDbServicer) -> web.Response:
    """Handle POST /data/delete - Delete an entity with its dependents."""
    body = await read_json_body(request)
    result = await servicer.delete(body)
    return web.json_response(result, status=status_for(result))


async def handle_display(request: web.Request, servicer: LinkDbServicer) -> web.Response:
    """Handle GET /data/display - Check existence of an entity."""
    result = await servicer.display(request.query.get("type"), request.query.get("id"))
    return web.json_response(result, status=status_for(result))


async def handle_health(request: web.Request, servicer: LinkDbServicer) -> web.Response:
    """Handle GET /v1/health - Health check."""
    result = await servicer.health()
    status = 200 if result.get("healthy") else 503
    return web.json_response(result, status=status)


async def handle_schema(request: web.Request, servicer: LinkDbServicer) -> web.Response:
    """Handle GET /v1/schema - Get schema information."""
    result = await servicer.get_schema(type_name=request.query.get("type"))
    return web.json_response(result, status=status_for(result))


class HttpServer:
    """aiohttp server wrapper for LinkDB.

    Manages the runner/site lifecycle so the server can be started and
    stopped from the main orchestrator or from tests.

    Example:
        >>> server = HttpServer(servicer, HttpConfig(port=3000))
        >>> await server.start()
        >>> # Server is now running
        >>> await server.stop()
    """

    def __init__(self, servicer: LinkDbServicer, config: HttpConfig | None = None) -> None:
        self.servicer = servicer
        self.config = config or HttpConfig()
        self._runner: web.AppRunner | None = None
        self._port: int | None = None

    async def start(self) -> None:
        """Start serving."""
        if self._runner is not None:
            logger.warning("HTTP server already running")
            return

        app = create_http_app(self.servicer, self.config)
        runner = web.AppRunner(app)
        await runner.setup()

        site = web.TCPSite(runner, self.config.host, self.config.port)
        await site.start()
        self._runner = runner

        # port 0 binds an ephemeral port; report the real one
        addresses = runner.addresses
        self._port = addresses[0][1] if addresses else self.config.port

        logger.info(f"HTTP server running on http://{self.config.host}:{self._port}")

    async def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._runner is None:
            return

        logger.info("Stopping HTTP server")
        await self._runner.cleanup()
        self._runner = None

    @property
    def is_running(self) -> bool:
        """Whether the server is running."""
        return self._runner is not None

    @property
    def port(self) -> int | None:
        """Bound port (after start)."""
        return self._port

