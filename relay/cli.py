"""
Command line entry point.

    minerva-relay serve [--host H] [--port P] [--no-tls]
    minerva-relay hash-password [PASSWORD]
"""
import argparse
import getpass
import sys
from typing import Optional

import structlog
import uvicorn

from relay.config import get_settings
from relay.errors import ConfigurationError
from relay.main import configure_logging, create_app
from relay.services.auth import hash_password
from relay.services.tls import ensure_certificate

logger = structlog.get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minerva-relay",
        description="Telemetry relay between one tracker and its viewers",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTPS relay server (default)")
    serve.add_argument("--host", help="Bind address (default: RELAY_HOST)")
    serve.add_argument("--port", type=int, help="Listen port (default: RELAY_PORT)")
    serve.add_argument("--no-tls", action="store_true", help="Serve plain HTTP, e.g. behind a TLS proxy")

    hasher = sub.add_parser("hash-password", help="Print the digest for RELAY_AUTH_PASSWORD_HASH")
    hasher.add_argument("password", nargs="?", help="Password (prompted when omitted)")

    return parser


def serve(args: argparse.Namespace) -> int:
    settings = get_settings()
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.no_tls:
        overrides["tls_enabled"] = False
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level)

    ssl_options = {}
    if settings.tls_enabled:
        try:
            certfile, keyfile = ensure_certificate(settings)
        except ConfigurationError as e:
            logger.error("Cannot start", error=str(e))
            return 1
        ssl_options = {"ssl_certfile": certfile, "ssl_keyfile": keyfile}

    logger.info(
        "Listening",
        host=settings.host,
        port=settings.port,
        scheme="https" if settings.tls_enabled else "http",
    )
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        **ssl_options,
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "hash-password":
        password = args.password if args.password is not None else getpass.getpass("Password: ")
        print(hash_password(password))
        return 0

    if args.command is None:
        args = build_parser().parse_args(["serve"])
    return serve(args)


if __name__ == "__main__":
    sys.exit(main())
