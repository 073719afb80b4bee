"""
=============================================================================
SERVECORE CLI ENTRY POINT
=============================================================================

Runs the demo greeting service behind wsgiref.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (localhost:8080)
    python -m servecore

    # Custom port, no request deadline
    python -m servecore --port 3000 --timeout 0

    # Try it
    curl -d name=Bob http://127.0.0.1:8080/greet

=============================================================================
STARTUP
=============================================================================

    1. argparse + environment  → ServerConfig   (ConfigError → exit 1)
    2. acquire_all(store, mailer)               (SetupError  → exit 1)
    3. build_router + Server
    4. make_wsgi_server                         (bind error → exit 1)
    5. serve_forever                            (Ctrl+C      → exit 0)
    6. leaving the ``with`` releases mailer, then store

A startup failure prints the whole error chain to stderr:

    acquire 'store': connection refused
    listen on 127.0.0.1:8080: [Errno 98] Address already in use

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .app import build_router, demo_providers
from .config import LOG_LEVELS, ServerConfig, configure_logging
from .errors import ConfigError, ErrorKind, SetupError, render, wrap
from .lifecycle import acquire_all
from .server import Server
from .transport.wsgi import WSGIApp, make_wsgi_server


logger = logging.getLogger("servecore")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="servecore",
        description="Demo greeting service on the servecore request-handling core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m servecore                       # Run with defaults
  python -m servecore --port 3000           # Custom port
  python -m servecore --host 0.0.0.0        # Listen on all interfaces
  python -m servecore --timeout 0           # No per-request deadline
        """,
    )

    # Defaults of None mean "keep what the environment or ServerConfig says".
    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Per-request deadline in seconds, 0 disables it (default: 30)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def load_config(argv: Optional[List[str]] = None) -> ServerConfig:
    """
    Environment first, then command-line overrides.

    Raises:
        ConfigError: a value is malformed or out of range.
    """
    args = build_parser().parse_args(argv)
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.timeout is not None:
        config.request_timeout = args.timeout or None

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as e:
        print(f"servecore: {render(e)}", file=sys.stderr)
        return 1

    configure_logging(config)

    try:
        with acquire_all(*demo_providers()) as (store, mailer):
            server = Server(build_router(store, mailer), store=store, mailer=mailer, config=config)
            server.router.log_routes()
            try:
                httpd = make_wsgi_server(WSGIApp(server, config.server_name), config.host, config.port)
            except OSError as e:
                raise wrap(e, f"listen on {config.host}:{config.port}", ErrorKind.SETUP) from e
            try:
                httpd.serve_forever()
            except KeyboardInterrupt:
                logger.info("Shutting down")
            finally:
                httpd.server_close()
    except (ConfigError, SetupError) as e:
        print(f"servecore: {render(e)}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
