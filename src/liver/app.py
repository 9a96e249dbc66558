"""
Live-reload development server.

Serves a source directory over HTTP on the main thread and runs the
WebSocket change notifier plus file watcher on a background thread.
Both halves share the same resolved source root.
"""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Optional

from aiohttp import web

from liver.core.config import ApplicationConfig, get_config
from liver.core.exceptions import ConfigurationError, StartupError
from liver.handlers.static_handler import StaticFilesHandler
from liver.middleware import create_middleware_stack
from liver.reload.notifier import ChangeNotifier
from liver.reload.watcher import FileWatcher
from liver.utils.logging_config import StructuredLogger, setup_logging


def create_app(source_root, config: ApplicationConfig) -> web.Application:
    """Create the HTTP application serving ``source_root``."""
    static_handler = StaticFilesHandler(Path(source_root), config.server.ws_port)

    app = web.Application(
        middlewares=create_middleware_stack(
            enable_request_logging=config.logging.enable_request_logging
        )
    )
    app.add_routes(
        [
            web.get("/", static_handler.handle_index),
            web.get("/{path:.*}", static_handler.handle),
        ]
    )
    return app


class LiveReloadServer:
    """Wires the static responder, the change notifier and the file watcher together."""

    def __init__(self, source_root, config: ApplicationConfig):
        root = Path(source_root)
        if not root.is_dir():
            raise ConfigurationError(f"Source root {root} is not a directory", config_key="source_root")

        self.source_root = root.resolve()
        self.config = config
        self.logger = StructuredLogger("liver.server")
        self.notifier: Optional[ChangeNotifier] = None

    def start_background(self) -> int:
        """Start the notifier thread; returns the WebSocket port actually bound."""
        watcher = FileWatcher(self.source_root)
        self.notifier = ChangeNotifier(
            watcher,
            host=self.config.server.ws_host,
            port=self.config.server.ws_port,
        )
        port = self.notifier.start()
        if port != self.config.server.ws_port:
            # An ephemeral port was requested; the snippet must dial the real one
            self.config = replace(self.config, server=replace(self.config.server, ws_port=port))
        return port

    def serve_forever(self) -> None:
        """Run the HTTP listener on the calling thread until interrupted."""
        server = self.config.server
        app = create_app(self.source_root, self.config)

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        try:
            site = web.TCPSite(runner, host=server.host, port=server.http_port)
            try:
                loop.run_until_complete(site.start())
            except OSError as e:
                raise StartupError("HTTP server", f"cannot bind {server.host}:{server.http_port}: {e}", original_error=e)

            self.logger.info(
                f"Serving {self.source_root} on http://{server.host}:{server.http_port}",
                source_root=str(self.source_root),
                host=server.host,
                port=server.http_port,
            )
            loop.run_forever()
        except KeyboardInterrupt:
            self.logger.info("Server stopped by user")
        finally:
            loop.run_until_complete(runner.cleanup())
            loop.close()
            asyncio.set_event_loop(None)

    def stop(self) -> None:
        if self.notifier is not None:
            self.notifier.stop()
            self.notifier = None


def watch(source_root, config: Optional[ApplicationConfig] = None) -> None:
    """Serve and watch ``source_root``.

    Returns only when interrupted; fatal startup failures (missing root,
    port already in use) are raised as ``ApplicationError`` subclasses.
    """
    if config is None:
        config = get_config()
    setup_logging(config.logging)

    server = LiveReloadServer(source_root, config)
    server.start_background()
    try:
        server.serve_forever()
    finally:
        server.stop()
