"""
liver: a live-reloading static file server for local web development.

Serves a directory over HTTP, injects a small script into HTML pages and
tells connected browsers to reload over a WebSocket whenever a file in the
directory is written.

Ports come from ``HTTP_PORT`` (8000 by default) and ``WS_PORT`` (8001).
"""

from liver.app import LiveReloadServer, create_app, watch
from liver.core.config import ApplicationConfig, LoggingConfig, ServerConfig
from liver.core.snippet import build_reload_snippet
from liver.handlers.static_handler import resolve

__version__ = "0.3.0"

__all__ = [
    "ApplicationConfig",
    "LiveReloadServer",
    "LoggingConfig",
    "ServerConfig",
    "build_reload_snippet",
    "create_app",
    "resolve",
    "watch",
]
