"""Tests for liver.reload.notifier — the WebSocket push channel."""

import asyncio
import logging
import socket
import threading

import aiohttp
import pytest
from watchdog.events import FileClosedEvent, FileModifiedEvent
from watchdog.utils import platform

from conftest import wait_until
from liver.core.exceptions import StartupError
from liver.reload.notifier import ChangeNotifier
from liver.reload.watcher import FileWatcher


@pytest.fixture
def notifier(site_dir):
    notifier = ChangeNotifier(FileWatcher(site_dir), port=0)
    notifier.start()
    yield notifier
    notifier.stop()


def ws_url(notifier: ChangeNotifier) -> str:
    return f"ws://127.0.0.1:{notifier.port}/"


def fire_change(notifier: ChangeNotifier, site_dir) -> None:
    """Feed the watcher a content write without touching the disk."""
    handler = notifier.watcher.handler
    event_class = FileClosedEvent if handler.use_close_events else FileModifiedEvent
    handler.dispatch(event_class(str(site_dir / "index.html")))


class FakeClient:
    def __init__(self, fail: bool = False):
        self.closed = False
        self.fail = fail
        self.sent = []

    async def send_str(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(data)


# ------------------------------------------------------------------
# broadcast() in isolation
# ------------------------------------------------------------------


class TestBroadcast:
    async def test_sends_reload_to_every_client(self, site_dir) -> None:
        notifier = ChangeNotifier(FileWatcher(site_dir), port=0)
        clients = [FakeClient(), FakeClient()]
        notifier._clients.update(clients)

        delivered = await notifier.broadcast()

        assert delivered == 2
        assert all(client.sent == ["Reload"] for client in clients)

    async def test_failed_send_drops_only_that_client(self, site_dir) -> None:
        notifier = ChangeNotifier(FileWatcher(site_dir), port=0)
        good, bad = FakeClient(), FakeClient(fail=True)
        notifier._clients.update([good, bad])

        delivered = await notifier.broadcast()

        assert delivered == 1
        assert good.sent == ["Reload"]
        assert notifier.client_count == 1

    async def test_closed_clients_are_skipped(self, site_dir) -> None:
        notifier = ChangeNotifier(FileWatcher(site_dir), port=0)
        closed = FakeClient()
        closed.closed = True
        notifier._clients.add(closed)

        assert await notifier.broadcast() == 0
        assert closed.sent == []
        assert notifier.client_count == 0

    async def test_no_clients(self, site_dir) -> None:
        notifier = ChangeNotifier(FileWatcher(site_dir), port=0)

        assert await notifier.broadcast() == 0

    def test_notify_before_start_is_noop(self, site_dir) -> None:
        notifier = ChangeNotifier(FileWatcher(site_dir), port=0)

        notifier.notify_threadsafe(str(site_dir / "index.html"))


# ------------------------------------------------------------------
# Running server
# ------------------------------------------------------------------


class TestRunningNotifier:
    async def test_start_reports_bound_port(self, notifier) -> None:
        assert notifier.port > 0

    async def test_connection_installs_watch(self, notifier) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)):
                await wait_until(lambda: notifier.watcher.current_hook() is not None)

                assert notifier.watcher.is_watching
                assert notifier.client_count == 1

    async def test_connected_client_gets_exactly_one_reload(self, notifier, site_dir) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)) as ws:
                await wait_until(lambda: notifier.watcher.current_hook() is not None)

                fire_change(notifier, site_dir)

                msg = await ws.receive(timeout=5)
                assert msg.type == aiohttp.WSMsgType.TEXT
                assert msg.data == "Reload"

                with pytest.raises(asyncio.TimeoutError):
                    await ws.receive(timeout=0.3)

    async def test_late_client_misses_earlier_change(self, notifier, site_dir) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)) as early:
                await wait_until(lambda: notifier.watcher.current_hook() is not None)
                fire_change(notifier, site_dir)
                assert (await early.receive(timeout=5)).data == "Reload"

                async with session.ws_connect(ws_url(notifier)) as late:
                    await wait_until(lambda: notifier.client_count == 2)

                    with pytest.raises(asyncio.TimeoutError):
                        await late.receive(timeout=0.3)

    async def test_reconnects_do_not_duplicate_reloads(self, notifier, site_dir) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)) as first:
                async with session.ws_connect(ws_url(notifier)) as second:
                    await wait_until(lambda: notifier.client_count == 2 and notifier.watcher.current_hook() is not None)

                    fire_change(notifier, site_dir)

                    for ws in (first, second):
                        assert (await ws.receive(timeout=5)).data == "Reload"
                        with pytest.raises(asyncio.TimeoutError):
                            await ws.receive(timeout=0.2)

    async def test_disconnected_client_does_not_block_others(self, notifier, site_dir) -> None:
        async with aiohttp.ClientSession() as session:
            survivor = await session.ws_connect(ws_url(notifier))
            async with aiohttp.ClientSession() as doomed_session:
                await doomed_session.ws_connect(ws_url(notifier))
                await wait_until(lambda: notifier.client_count == 2 and notifier.watcher.current_hook() is not None)
            # Closing the session drops the socket without a close handshake

            fire_change(notifier, site_dir)

            msg = await survivor.receive(timeout=5)
            assert msg.data == "Reload"
            await survivor.close()

    async def test_real_write_reaches_client(self, notifier, site_dir) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)) as ws:
                await wait_until(lambda: notifier.watcher.current_hook() is not None)

                (site_dir / "style.css").write_bytes(b"body{color:green}")

                msg = await ws.receive(timeout=5)
                assert msg.data == "Reload"

    @pytest.mark.skipif(not platform.is_linux(), reason="close-after-write events come from inotify")
    async def test_one_real_write_sends_one_reload(self, notifier, site_dir) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)) as ws:
                await wait_until(lambda: notifier.watcher.current_hook() is not None)

                with open(site_dir / "index.html", "w") as fh:
                    fh.write("<html><body>Changed</body></html>")

                assert (await ws.receive(timeout=5)).data == "Reload"
                with pytest.raises(asyncio.TimeoutError):
                    await ws.receive(timeout=1.0)

    async def test_watch_is_installed_off_the_event_loop(self, notifier) -> None:
        threads = []
        register = notifier.watcher.register

        def recording_register(hook) -> None:
            threads.append(threading.current_thread().name)
            register(hook)

        notifier.watcher.register = recording_register
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url(notifier)):
                await wait_until(lambda: notifier.watcher.current_hook() is not None)

        assert threads
        assert "liver-notifier" not in threads

    async def test_broadcast_failure_is_logged(self, notifier, site_dir, caplog) -> None:
        async def exploding_broadcast() -> int:
            raise ValueError("broadcast exploded")

        notifier.broadcast = exploding_broadcast
        caplog.set_level(logging.ERROR, logger="liver.reload.notifier")

        notifier.notify_threadsafe(str(site_dir / "index.html"))

        await wait_until(lambda: any("broadcast exploded" in r.getMessage() for r in caplog.records))
        record = next(r for r in caplog.records if "broadcast exploded" in r.getMessage())
        assert record.levelno == logging.ERROR
        assert record.error_type == "ValueError"

    async def test_missing_root_degrades_without_closing(self, tmp_path) -> None:
        notifier = ChangeNotifier(FileWatcher(tmp_path / "gone"), port=0)
        notifier.start()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.ws_connect(ws_url(notifier)) as ws:
                    await wait_until(lambda: notifier.degraded)

                    assert not ws.closed
                    assert not notifier.watcher.is_watching
        finally:
            notifier.stop()


class TestStartup:
    def test_port_in_use_raises_startup_error(self, site_dir) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
            occupied.bind(("127.0.0.1", 0))
            occupied.listen()
            port = occupied.getsockname()[1]

            notifier = ChangeNotifier(FileWatcher(site_dir), port=port)

            with pytest.raises(StartupError) as excinfo:
                notifier.start()

            assert excinfo.value.details["component"] == "WebSocket server"
            notifier.stop()
