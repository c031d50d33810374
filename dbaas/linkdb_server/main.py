"""
LinkDB Server - Main entry point.

This module starts the LinkDB server:
- Builds and freezes the schema registry
- Creates the in-memory GraphStore
- Serves the HTTP API until SIGINT/SIGTERM

Usage:
    python -m dbaas.linkdb_server.main
    linkdb-server

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The schema registry is frozen before the first request is served
    - Graceful shutdown closes the listening socket before exiting
    - State lives in memory only and is lost on exit

How to change safely:
    - Add new components with enable/disable flags in config.py
    - Test the shutdown sequence when adding background tasks
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api import HttpServer, LinkDbServicer
from .config import ServerConfig
from .schema import build_registry
from .store import GraphStore

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """LinkDB Server orchestrator.

    Attributes:
        config: Server configuration
        store: The in-memory GraphStore
        servicer: Request handling on top of the store
        http_server: aiohttp server wrapper

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running until request_shutdown()
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.store: GraphStore | None = None
        self.servicer: LinkDbServicer | None = None
        self.http_server: HttpServer | None = None

    async def start(self, wait: bool = True) -> None:
        """Start the server.

        Args:
            wait: Block until request_shutdown() is called
        """
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting LinkDB server")
        self.config.log_config()

        try:
            registry = build_registry()
            logger.info(f"Schema registry frozen, fingerprint: {registry.fingerprint}")

            self.store = GraphStore(
                registry=registry,
                reject_unknown_fields=self.config.store.reject_unknown_fields,
            )
            self.servicer = LinkDbServicer(self.store)

            self.http_server = HttpServer(self.servicer, self.config.http)
            await self.http_server.start()

            self._running = True
            logger.info("LinkDB server started successfully")

            if wait:
                await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if self.http_server:
            await self.http_server.stop()

        if self._running:
            self._running = False
            logger.info("LinkDB server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return self._running


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
