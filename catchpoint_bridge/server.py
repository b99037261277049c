"""Web server receiving Catchpoint Alerts API pushes.

Alerts are forwarded to Nagios through send_nsca and cached so the emitter
endpoints can report them in the tm-health-check JSON format.

Usage:
    catchpoint-bridge --config ./receiver.cfg.json --verbose
    curl -X POST -d @/tmp/alert_api.xml http://127.0.0.1:8080/catchpoint/alerts \\
        --header "Content-Type:application/xml"

Put the server behind a load balancer that only forwards the alert endpoint
and keep it listening on 127.0.0.1.
"""

from __future__ import annotations

import argparse
import os
from typing import Optional, Sequence

import structlog
import uvicorn

from catchpoint_bridge.app import create_app
from catchpoint_bridge.errors import ConfigurationError
from catchpoint_bridge.logging_config import configure_logging
from catchpoint_bridge.settings import DEFAULT_CONFIG_PATH, load_settings


logger = structlog.get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Catchpoint alerts to NSCA and tm-health-check bridge")
    parser.add_argument(
        "--config",
        default=os.getenv("BRIDGE_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to the JSON or YAML config file",
    )
    parser.add_argument("--verbose", action="store_true", help="Set a verbose output")
    parser.add_argument(
        "--dump-requests-dir",
        default=None,
        help="Dump each http request's body into a new file in the provided folder",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        configure_logging(verbose=bool(args.verbose))
        logger.error("Unable to load configuration", config=args.config, error=str(exc))
        return 1

    if args.dump_requests_dir is not None:
        settings = settings.model_copy(update={"dump_requests_dir": args.dump_requests_dir})

    configure_logging(settings.log_level, verbose=bool(args.verbose), log_file=settings.log_file)

    try:
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.error("Invalid configuration", config=args.config, error=str(exc))
        return 1

    logger.info(
        "Starting web server",
        host=settings.listener_ip,
        port=settings.listener_port,
        endpoints=[e.uri_path for e in settings.endpoints],
        emitters=[e.uri_path for e in settings.emitter],
        nsca_enabled=settings.nsca.enabled,
    )
    # One process only: the check cache lives in this interpreter.
    uvicorn.run(
        app,
        host=settings.listener_ip,
        port=settings.listener_port,
        log_level="debug" if args.verbose else "info",
        workers=1,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
