"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for a servecore process.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m servecore --port 3000                           │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── SERVECORE_PORT=3000 python -m servecore                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is validated eagerly at startup: a bad value is a
ConfigError before anything is acquired or served.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class ServerConfig:
    """
    Configuration for a servecore process.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    TRANSPORT (only used by the demo entry point)
    - host, port

    REQUESTS
    - request_timeout: per-request deadline in seconds, None = no deadline

    LOGGING
    - log_level, log_format ("text" or "json" access log), access_log

    IDENTITY
    - server_name

    =========================================================================
    """

    host: str = "127.0.0.1"
    port: int = 8080

    request_timeout: Optional[float] = 30.0
    """
    Deadline for one request's handler chain. Exceeding it answers 504.
    None disables the deadline.
    """

    log_level: str = "INFO"
    log_format: str = "text"
    access_log: bool = True

    server_name: str = "servecore/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        SERVECORE_HOST            Server host (default: 127.0.0.1)
        SERVECORE_PORT            Server port (default: 8080)
        SERVECORE_TIMEOUT         Request deadline in seconds, 0 = none (default: 30)
        SERVECORE_LOG_LEVEL       Logging level (default: INFO)
        SERVECORE_LOG_FORMAT      Access log format (default: text)

        Raises:
            ConfigError: a variable holds a value of the wrong type.
        """
        try:
            timeout = float(os.getenv("SERVECORE_TIMEOUT", "30"))
            return cls(
                host=os.getenv("SERVECORE_HOST", "127.0.0.1"),
                port=int(os.getenv("SERVECORE_PORT", "8080")),
                request_timeout=timeout or None,
                log_level=os.getenv("SERVECORE_LOG_LEVEL", "INFO"),
                log_format=os.getenv("SERVECORE_LOG_FORMAT", "text"),
            )
        except ValueError as e:
            raise ConfigError("invalid environment configuration", e) from e

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: describing the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"invalid port: {self.port}. Must be 0-65535.")

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigError("request_timeout must be > 0 or None")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"invalid log_level: {self.log_level!r}")

        if self.log_format not in ("text", "json"):
            raise ConfigError(f"invalid log_format: {self.log_format!r}")


def configure_logging(config: ServerConfig) -> None:
    """Configure the root logger and the servecore loggers from ``config``."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("servecore").setLevel(level)
