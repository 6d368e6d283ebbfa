from __future__ import annotations

import argparse
import logging
import os
import signal
import threading
from typing import List, Optional

from . import logger as log_config
from .config import load_targets
from .errors import InvalidInputError
from .metrics import MetricsRegistry
from .poller import Poller
from .scrapers import CurlScraper
from .server import MetricsServer
from .shelly import ShellyParser

logger = logging.getLogger(__name__)

DEFAULT_METRICS_ADDR = "0.0.0.0:9100"
DEFAULT_METRICS_PATH = "/metrics"
DEFAULT_TARGETS_CONFIG_FILE = "./targets.json"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export Shelly plug telemetry as Prometheus metrics")
    parser.add_argument(
        "--metrics-addr",
        default=DEFAULT_METRICS_ADDR,
        help="Address on which the metrics will be served (default: standard node exporter port)",
    )
    parser.add_argument("--metrics-path", default=DEFAULT_METRICS_PATH, help="Path on which the metrics will be served")
    parser.add_argument(
        "--poll-period", type=float, default=15.0, help="How frequently the targets are polled, in seconds"
    )
    parser.add_argument(
        "--targets-config-file", default=DEFAULT_TARGETS_CONFIG_FILE, help="File name of the JSON targets config file"
    )
    parser.add_argument("--verbose-scraper", action="store_true", help="Log verbose libcurl output")
    parser.add_argument("--verbose", action="store_true", help="Log every successful target response")
    parser.add_argument("--max-workers", type=int, default=None, help="Cap on concurrent scrapes per tick")
    parser.add_argument("--timeout", type=float, default=10.0, help="Per-scrape timeout, in seconds")
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)",
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not args.metrics_addr:
        parser.error("--metrics-addr: Must provide a value")
    if not args.metrics_path or not args.metrics_path.startswith("/"):
        parser.error("--metrics-path: Must be non-empty and start with a '/'")
    if args.poll_period < 1:
        parser.error("--poll-period: Must be at least one second")
    if not args.targets_config_file or not os.path.exists(args.targets_config_file):
        parser.error("--targets-config-file: File must exist")
    if args.max_workers is not None and args.max_workers < 1:
        parser.error("--max-workers: Must be at least 1")
    if args.timeout <= 0:
        parser.error("--timeout: Must be positive")
    return args


def install_signal_handlers(poller: Poller) -> None:
    def handler(signum, frame) -> None:
        logger.warning("Received signal %d, terminating", signum)
        # Hand off to a thread so the handler never waits on the poller lock.
        threading.Thread(target=poller.stop, name="poller-stop", daemon=True).start()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    log_config.configure(level=args.log_level)

    try:
        targets = load_targets(args.targets_config_file)
    except InvalidInputError as exc:
        logger.critical('Failed to load targets file "%s": %s', args.targets_config_file, exc)
        return 1
    if not targets:
        logger.critical('Targets file "%s" contains no targets', args.targets_config_file)
        return 1
    logger.info("Loaded targets: %d", len(targets))

    registry = MetricsRegistry()
    parser = ShellyParser()
    logger.info("Initialized parser: %s", parser.version)

    with CurlScraper(verbose=args.verbose_scraper, timeout=args.timeout) as scraper:
        logger.info("Initialized scraper: %s", scraper.version)

        poller = Poller(
            scraper,
            parser,
            period=args.poll_period,
            success_callback=registry.on_success,
            error_callback=registry.on_error,
            verbose=args.verbose,
            max_workers=args.max_workers,
        )
        for target in targets:
            poller.add_target(target.name, target.hostname)
            registry.add_target(target.name)

        try:
            server = MetricsServer(registry, address=args.metrics_addr, path=args.metrics_path)
            server.start()
        except (InvalidInputError, OSError) as exc:
            logger.critical("Failed to serve metrics on %s: %s", args.metrics_addr, exc)
            return 1

        install_signal_handlers(poller)
        try:
            poller.run()
        finally:
            server.close()
    return 0
