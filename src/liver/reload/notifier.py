"""
WebSocket change notifier.

Runs its own aiohttp application on a background thread with a private
event loop. Every connection (re)installs the watch hook; every change is
broadcast as a single ``Reload`` text message to all connected clients.
"""

import asyncio
import concurrent.futures
import threading
from typing import Optional, Set

from aiohttp import WSCloseCode, WSMsgType, web

from liver.core.config import DEFAULT_HOST, DEFAULT_WS_PORT
from liver.core.exceptions import StartupError, WatchError
from liver.core.snippet import RELOAD_MESSAGE
from liver.reload.watcher import FileWatcher
from liver.utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class ChangeNotifier:
    """Push channel server that tells browsers to reload."""

    def __init__(self, watcher: FileWatcher, host: str = DEFAULT_HOST, port: int = DEFAULT_WS_PORT):
        self.watcher = watcher
        self.host = host
        self.port = port
        self.degraded = False
        self._clients: Set[web.WebSocketResponse] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._runner: Optional[web.AppRunner] = None
        self._thread: Optional[threading.Thread] = None
        self._started: "concurrent.futures.Future[int]" = concurrent.futures.Future()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/{tail:.*}", self.handle_connection)
        app.on_shutdown.append(self._close_clients)
        return app

    async def handle_connection(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._clients.add(ws)
        logger.info("Reload client connected", remote_addr=request.remote, clients=len(self._clients))

        try:
            # Scheduling a recursive watch walks the whole tree; keep it off the loop
            await asyncio.get_running_loop().run_in_executor(None, self.watcher.register, self.notify_threadsafe)
        except WatchError as error:
            # HTTP keeps serving; reloads just stop working
            self.degraded = True
            logger.critical(f"File watcher unavailable, live reload disabled: {error}", exc_info=True)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.warning("Reload client connection error", error=str(ws.exception()))
                    break
        finally:
            self._clients.discard(ws)
            logger.debug("Reload client disconnected", clients=len(self._clients))

        return ws

    async def broadcast(self) -> int:
        """Send the reload message to every connected client.

        Clients whose send fails are dropped; returns the number of
        successful deliveries.
        """
        delivered = 0
        for ws in list(self._clients):
            if ws.closed:
                self._clients.discard(ws)
                continue
            try:
                await ws.send_str(RELOAD_MESSAGE)
            except (ConnectionError, RuntimeError) as error:
                self._clients.discard(ws)
                logger.warning(f"Dropping reload client after failed send: {error}", error_type=type(error).__name__)
            else:
                delivered += 1

        logger.info(f"Sent reload to {delivered} client(s)", delivered=delivered)
        return delivered

    def notify_threadsafe(self, src_path: str) -> None:
        """Change hook for the watcher; safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self.broadcast(), loop)
        future.add_done_callback(self._log_broadcast_failure)

    @staticmethod
    def _log_broadcast_failure(future: "concurrent.futures.Future[int]") -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                f"Reload broadcast failed: {error}",
                error_type=type(error).__name__,
                exc_info=(type(error), error, error.__traceback__),
            )

    async def _close_clients(self, app: web.Application) -> None:
        for ws in list(self._clients):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
        self._clients.clear()

    async def _start_site(self) -> int:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host=self.host, port=self.port)
        await site.start()
        # Port 0 binds an ephemeral port; report the real one
        return self._runner.addresses[0][1]

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            try:
                port = loop.run_until_complete(self._start_site())
            except Exception as error:
                self._started.set_exception(error)
                return

            self.port = port
            # Report success only once the loop runs, so stop() can always reach it
            loop.call_soon(self._started.set_result, port)
            logger.info(f"Reload server listening on ws://{self.host}:{port}", host=self.host, port=port)
            loop.run_forever()
        finally:
            if self._runner is not None:
                loop.run_until_complete(self._runner.cleanup())
            loop.close()

    def start(self, timeout: Optional[float] = 10.0) -> int:
        """Start the server thread and block until the port is bound.

        Raises ``StartupError`` when the socket cannot be bound.
        """
        self._thread = threading.Thread(target=self._run, name="liver-notifier", daemon=True)
        self._thread.start()
        try:
            return self._started.result(timeout=timeout)
        except concurrent.futures.TimeoutError as error:
            raise StartupError("WebSocket server", "timed out while binding", original_error=error)
        except OSError as error:
            raise StartupError("WebSocket server", f"cannot bind {self.host}:{self.port}: {error}", original_error=error)

    def stop(self) -> None:
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None:
            self._thread.join()
        self.watcher.stop()
