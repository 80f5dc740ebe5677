#!/usr/bin/env python3
"""
Poll Dispatcher CLI
Command line interface for starting the dispatch server
"""

import argparse
import asyncio
import socket
import sys
from . import __version__
from .info import info, MODES, TRANSPORTS, STDIO_TRANSPORT
from .output import output
from .server import run_server
from .stdio import run_stdio


def check_port_available(host: str, port: int) -> bool:
    """Check if port is available for binding"""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            return True
    except OSError:
        return False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Poll Dispatcher - in-memory long-poll task dispatch server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  poll-dispatcher --timeout=59
  poll-dispatcher --mode job --port 8100
  poll-dispatcher --transport stdio --timeout 30
  DISPATCHER_QUEUE_CAPACITY=5 poll-dispatcher --timeout 30 --debug
        """
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Seconds a poll or job status call waits (default: {info.timeout:g})"
    )

    parser.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help=f"Which tool family to serve (default: {info.mode})"
    )

    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default=None,
        help=f"Serve tools over HTTP or over stdin/stdout (default: {info.transport})"
    )

    parser.add_argument(
        "--host",
        default=None,
        help=f"HTTP server bind address (default: {info.host})"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help=f"HTTP server port (default: {info.port})"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Poll Dispatcher v{__version__}"
    )
    return parser


def main(argv=None):
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)
    output.configure(debug=args.debug)

    try:
        info.configure(
            timeout=args.timeout, mode=args.mode, host=args.host, port=args.port, transport=args.transport
        )
    except ValueError as e:
        output.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if info.transport == STDIO_TRANSPORT:
        output.info(f"Starting {info.name} v{__version__} on stdio ({info.mode} mode, {info.timeout:g}s timeout)")
        try:
            asyncio.run(run_stdio())
        except KeyboardInterrupt:
            output.info("Shutting down dispatcher...")
        return

    if not check_port_available(info.host, info.port):
        output.error(f"Port {info.port} is not available on {info.host}")
        sys.exit(1)

    output.info(f"Starting {info.name} v{__version__}")
    output.info(f"  Listening on: {info.host}:{info.port}")
    output.info(f"  Mode: {info.mode}")
    output.info(f"  Timeout: {info.timeout:g}s")

    try:
        run_server()
    except KeyboardInterrupt:
        output.info("Shutting down dispatcher...")
        sys.exit(0)
    except Exception as e:
        output.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
