"""Main entry point for the ticket registry."""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv

from etix.bootstrap import bootstrap_registry, registry_summary
from etix.models.config import EtixConfig

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure logging from LOG_LEVEL."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def serve(config: EtixConfig) -> None:
    """Run the HTTP server."""
    logger.info(f"Starting HTTP server on {config.http_host}:{config.http_port}")
    uvicorn.run(
        "etix.http_server:app",
        host=config.http_host,
        port=config.http_port,
        reload=os.getenv("DEBUG", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


async def bootstrap(config: EtixConfig) -> dict:
    """Build a registry from configuration and summarize it."""
    registry = await bootstrap_registry(config)
    return await registry_summary(registry)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="etix", description="Event ticket registry")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Override HTTP_HOST")
    serve_parser.add_argument("--port", type=int, help="Override HTTP_PORT")

    subparsers.add_parser("bootstrap", help="Build the configured registry and print a summary")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "serve"
        args.host = None
        args.port = None
    return args


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    load_dotenv()
    configure_logging()
    args = parse_args(argv)

    try:
        config = EtixConfig()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.command == "bootstrap":
        summary = asyncio.run(bootstrap(config))
        print(json.dumps(summary, indent=2))
        return

    if args.host:
        config.http_host = args.host
    if args.port:
        config.http_port = args.port
    serve(config)


if __name__ == "__main__":
    main()
