"""
Centralized configuration management for the live-reload server.
Provides type-safe configuration records built once at startup from the environment.
"""

import os
import logging
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from liver.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 8000
DEFAULT_WS_PORT = 8001


def _parse_port(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", config_key=name)


@dataclass
class ServerConfig:
    """HTTP listener and push channel configuration.

    A port of 0 asks the OS for a free port.
    """
    host: str = DEFAULT_HOST
    http_port: int = DEFAULT_HTTP_PORT
    ws_host: str = DEFAULT_HOST
    ws_port: int = DEFAULT_WS_PORT

    def __post_init__(self):
        for key, port in (("http_port", self.http_port), ("ws_port", self.ws_port)):
            if port < 0 or port > 65535:
                raise ConfigurationError(f"Invalid port number: {port}", config_key=key)
        if self.http_port and self.http_port == self.ws_port:
            raise ConfigurationError(
                f"HTTP and WebSocket servers cannot share port {self.http_port}",
                config_key="ws_port",
            )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"  # json or text
    enable_request_logging: bool = True
    log_file: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    def __post_init__(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(
                f"Invalid log level: {self.level}. Must be one of {valid_levels}", config_key="level"
            )
        self.level = self.level.upper()

        valid_formats = ["json", "text"]
        if self.format.lower() not in valid_formats:
            raise ConfigurationError(
                f"Invalid log format: {self.format}. Must be one of {valid_formats}", config_key="format"
            )
        self.format = self.format.lower()


@dataclass
class ApplicationConfig:
    """Main application configuration container."""
    server: ServerConfig
    logging: LoggingConfig

    @classmethod
    def from_environment(cls, environ: Optional[dict] = None) -> "ApplicationConfig":
        """Create configuration from environment variables.

        When ``environ`` is omitted, a ``.env`` file in the working directory
        is loaded first (existing variables win) and ``os.environ`` is read.
        """
        if environ is None:
            load_dotenv(find_dotenv(usecwd=True))
            environ = dict(os.environ)

        try:
            # ROCKET_PORT is honoured for compatibility with older setups
            http_port = environ.get("HTTP_PORT", environ.get("ROCKET_PORT", str(DEFAULT_HTTP_PORT)))
            server = ServerConfig(
                host=environ.get("HOST", DEFAULT_HOST),
                http_port=_parse_port("HTTP_PORT", http_port),
                ws_host=environ.get("WS_HOST", DEFAULT_HOST),
                ws_port=_parse_port("WS_PORT", environ.get("WS_PORT", str(DEFAULT_WS_PORT))),
            )

            logging_config = LoggingConfig(
                level=environ.get("LOG_LEVEL", "INFO"),
                format=environ.get("LOG_FORMAT", "text"),
                enable_request_logging=environ.get("ENABLE_REQUEST_LOGGING", "true").lower() == "true",
                log_file=environ.get("LOG_FILE"),
                max_file_size=int(environ.get("LOG_MAX_FILE_SIZE", str(10 * 1024 * 1024))),
                backup_count=int(environ.get("LOG_BACKUP_COUNT", "5")),
            )
        except ConfigurationError as e:
            logger.error(f"Invalid configuration value: {e}")
            raise
        except ValueError as e:
            logger.error(f"Invalid configuration value: {e}")
            raise ConfigurationError(str(e), original_error=e)

        return cls(server=server, logging=logging_config)

    def with_overrides(
        self,
        host: Optional[str] = None,
        http_port: Optional[int] = None,
        ws_port: Optional[int] = None,
        log_level: Optional[str] = None,
    ) -> "ApplicationConfig":
        """Return a copy with command-line overrides applied."""
        server_changes = {
            key: value
            for key, value in (("host", host), ("http_port", http_port), ("ws_port", ws_port))
            if value is not None
        }
        logging_config = self.logging
        if log_level is not None:
            logging_config = replace(logging_config, level=log_level)
        return ApplicationConfig(server=replace(self.server, **server_changes), logging=logging_config)

    def validate(self) -> None:
        """Validate the configuration."""
        if self.server.ws_host not in ("127.0.0.1", "localhost"):
            # The injected script always dials 127.0.0.1
            logger.warning(f"WebSocket server bound to {self.server.ws_host}; browsers connect to 127.0.0.1")

        logger.debug(
            f"Configuration loaded: http={self.server.host}:{self.server.http_port} "
            f"ws={self.server.ws_host}:{self.server.ws_port}"
        )


def get_config() -> ApplicationConfig:
    """Build and validate the configuration from the environment."""
    config = ApplicationConfig.from_environment()
    config.validate()
    return config
