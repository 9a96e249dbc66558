"""Shared fixtures for liver tests."""

import asyncio
import logging
import time

import pytest

from liver.core.config import ApplicationConfig, LoggingConfig, ServerConfig

INDEX_HTML = b"<html><body>Hi</body></html>"
STYLE_CSS = b"body{color:red}"


@pytest.fixture
def site_dir(tmp_path):
    """A small static site: index page, stylesheet, nested docs and binary data."""
    site = tmp_path / "site"
    site.mkdir()

    (site / "index.html").write_bytes(INDEX_HTML)
    (site / "style.css").write_bytes(STYLE_CSS)
    (site / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00")
    (site / "notes").write_bytes(b"no extension here")
    (site / "data.unknownext").write_bytes(b"mystery")

    docs = site / "docs"
    docs.mkdir()
    (docs / "index.html").write_bytes(b"<h1>Docs</h1>")

    (site / "empty").mkdir()

    return site


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() reconfigures the root logger; put pytest's handlers back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def app_config() -> ApplicationConfig:
    return ApplicationConfig(server=ServerConfig(), logging=LoggingConfig())


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Poll ``predicate`` from async code until it holds or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
