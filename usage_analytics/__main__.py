"""Command line entry point.

Usage:
    python -m usage_analytics capture
    python -m usage_analytics analytics --port 9000
    python -m usage_analytics all
"""
import argparse
import sys
from typing import List, Optional

import uvicorn

from usage_analytics.api.app import SERVICES, create_app
from usage_analytics.config import load_settings
from usage_analytics.exceptions import ConfigError
from usage_analytics.logger import logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usage_analytics",
        description="Real-time usage analytics services",
    )
    parser.add_argument("service", choices=list(SERVICES) + ["all"], help="Service to run")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Listen port (defaults to the configured port)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(settings.log_level, settings.log_format)
    services = SERVICES if args.service == "all" else (args.service,)
    port = args.port or settings.port_for(args.service)

    logger.info(f"Starting {args.service} service on {args.host}:{port}")
    app = create_app(settings, services=services)
    uvicorn.run(app, host=args.host, port=port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
