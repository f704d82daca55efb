#!/usr/bin/env python3
"""Main entry point for the instrumentation exercise service"""
import argparse
import sys
from typing import List, Optional
import uvicorn
from config import Config
from app.server import DemoServer
from logging_config import setup_structured_logging, get_logger, log_server_startup, log_error


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Demo HTTP service instrumented with OpenTelemetry metrics")
    parser.add_argument(
        "--web.listen-addr",
        dest="listen_addr",
        default=None,
        help="The address to listen on for web requests (default :8080)"
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration from the environment; the command line wins"""
    if args.listen_addr is not None:
        return Config(listen_addr=args.listen_addr)
    return Config()


def main(argv: Optional[List[str]] = None):
    """Main application entry point"""
    args = parse_args(argv)

    try:
        config = load_config(args)
        setup_structured_logging(config)
        logger = get_logger(__name__)
        log_server_startup(logger, config)

        server = DemoServer(config)
        host, port = config.get_listen_host_port()
    except Exception as e:
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        sys.exit(1)

    # Blocks until interrupted; uvicorn runs the shutdown hooks on SIGINT/SIGTERM
    uvicorn.run(
        server.get_app(),
        host=host,
        port=port,
        log_config=None  # We handle logging ourselves
    )

    if server.shutdown_error is not None:
        sys.exit(1)


if __name__ == '__main__':
    main()
