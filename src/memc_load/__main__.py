"""Installed-apps loader entry point. Use --help for usage."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from config import load_config
from config.config import DEFAULT_CACHE_ADDRESSES, DEFAULT_PATTERN, LoaderConfig
from core.errors.exceptions import ConfigurationError
from core.logging import (
    detect_log_output_mode,
    generate_run_id,
    log_exception,
    log_startup_banner,
    setup_logging,
)
from memc_load import __version__
from memc_load.cache import CachePartitionTable
from memc_load.counters import LoadSummary
from memc_load.pipeline import LoadPipeline
from memc_load.schemas import DeviceType
from memc_load.selftest import run_selftest
from memc_load.signals import remove_shutdown_signal_handlers, setup_shutdown_signal_handlers

# Project root directory (where .env file is located)
# __main__.py is at src/memc_load/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("true", "1", "yes")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="memc-load",
        description="Load gzip'd installed-apps logs into partitioned memcached",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Load every file matching the default pattern
    python -m memc_load

    # Parse and count without touching memcached
    python -m memc_load --dry --pattern "/data/appsinstalled/*.tsv.gz"

    # Check payload serialization and exit
    python -m memc_load --test
        """,
    )

    # Defaults are None so values from the config file are only overridden
    # by flags that were actually given
    parser.add_argument(
        "--pattern",
        default=None,
        help=f"Glob pattern of input files (default: {DEFAULT_PATTERN})",
    )
    parser.add_argument(
        "--dry",
        action="store_true",
        help="Read and parse files without writing to memcached",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent record workers per file (default: 30)",
    )
    for device_type in DeviceType:
        parser.add_argument(
            f"--{device_type.value}",
            default=None,
            metavar="HOST:PORT",
            help=f"memcached for {device_type.value} records "
            f"(default: {DEFAULT_CACHE_ADDRESSES[device_type.value]})",
        )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for a single cache set (default: 10)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Attempts per record before counting it as failed (default: 3)",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=None,
        help="Records buffered between decoder and workers (default: 10000)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML config file (default: $MEMC_LOAD_CONFIG or bundled config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )
    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )
    parser.add_argument(
        "-t",
        "--test",
        action="store_true",
        help="Run the payload serialization self-check and exit",
    )

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """Translate given CLI flags into the nested ``memc_load:`` config layout."""
    overrides: dict = {}
    if args.pattern is not None:
        overrides["pattern"] = args.pattern
    if args.dry:
        overrides["dry_run"] = True
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.queue_size is not None:
        overrides["queue_size"] = args.queue_size

    cache: dict = {}
    if args.timeout is not None:
        cache["timeout_seconds"] = args.timeout
    addresses = {
        device_type.value: getattr(args, device_type.value)
        for device_type in DeviceType
        if getattr(args, device_type.value) is not None
    }
    if addresses:
        cache["addresses"] = addresses
    if cache:
        overrides["cache"] = cache

    if args.retries is not None:
        overrides["retry"] = {"max_attempts": args.retries}
    return overrides


async def run_load(config: LoaderConfig) -> LoadSummary:
    """
    Build the cache partitions, verify them and run the pipeline.

    Raises:
        ConfigurationError: If a partition is unreachable or the pattern is
            invalid
    """
    partitions = CachePartitionTable.from_endpoints(config.endpoints(), pool_size=config.pool_size)
    try:
        if config.verify_connections and not config.dry_run:
            await partitions.verify(config.timeout_seconds)

        pipeline = LoadPipeline(config, partitions)
        setup_shutdown_signal_handlers(pipeline.request_stop, lambda: pipeline.stopping)
        try:
            return await pipeline.run()
        finally:
            remove_shutdown_signal_handlers()
    finally:
        await partitions.close()


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    run_id = generate_run_id()
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR") or "logs")
    setup_logging(
        name="memc_load",
        stage="selftest" if args.test else "load",
        domain="memc_load",
        log_dir=log_dir,
        json_format=os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes"),
        console_level=getattr(logging, args.log_level),
        run_id=run_id,
        log_to_stdout=args.log_to_stdout or _env_flag("LOG_TO_STDOUT"),
    )

    if args.test:
        return EXIT_OK if run_selftest() else EXIT_FATAL

    try:
        config = load_config(args.config, build_overrides(args))
    except ConfigurationError as e:
        log_exception(logger, e, "Configuration error", include_traceback=False)
        return EXIT_FATAL

    log_startup_banner(
        logger,
        "Installed Apps Loader",
        version=__version__,
        run_id=run_id,
        pattern=config.pattern,
        workers=config.workers,
        dry_run=config.dry_run,
        partitions=", ".join(f"{k}={v}" for k, v in config.cache_addresses.items()),
        log_output_mode=detect_log_output_mode(),
    )

    try:
        summary = asyncio.run(run_load(config))
    except ConfigurationError as e:
        log_exception(logger, e, "Fatal startup error", include_traceback=False)
        return EXIT_FATAL
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.warning("Interrupted, exiting")
        return EXIT_INTERRUPTED

    return EXIT_INTERRUPTED if summary.interrupted else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
