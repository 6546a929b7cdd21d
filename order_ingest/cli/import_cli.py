"""
Command-line interface for the order importer.

Usage:
    python -m order_ingest.cli.import_cli run [--date yyyy-MM-dd] [--platform P ...]
    python -m order_ingest.cli.import_cli check
"""

import argparse
import json
import signal
import sys

from psycopg import OperationalError

from order_ingest.batch import Orchestrator
from order_ingest.config import load_settings
from order_ingest.core.errors import ConfigurationError
from order_ingest.observability.logger import get_logger
from order_ingest.observability.metrics import start_metrics_server
from order_ingest.warehouse import DatabaseConnectionPool, WarehouseSink

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def _open_pool(args) -> DatabaseConnectionPool:
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return pool


def run_command(args) -> int:
    """
    Import orders for one collection date.

    Returns:
        Process exit code: 0 on SUCCESS or SKIPPED, 1 on FAILED
    """
    settings = load_settings(args.config, args.env_file)
    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    pool = _open_pool(args)
    try:
        with Orchestrator(settings, WarehouseSink(pool), platforms=args.platform) as orchestrator:
            def _cancel(signum, frame):
                logger.warning(f"Received signal {signum}, cancelling pending retries")
                orchestrator.cancel()

            previous = signal.signal(signal.SIGTERM, _cancel)
            try:
                summary = orchestrator.run(args.date)
            finally:
                signal.signal(signal.SIGTERM, previous)
    finally:
        pool.close()

    print(json.dumps(summary.to_report(), indent=2, ensure_ascii=False))
    if summary.is_failed:
        logger.error(f"Import failed: {summary.error_message}")
        return EXIT_FAILED
    return EXIT_OK


def check_command(args) -> int:
    """
    Probe every enabled platform API and the database.

    Returns:
        0 if everything is reachable, 1 otherwise
    """
    settings = load_settings(args.config, args.env_file)

    database_ok = False
    try:
        pool = _open_pool(args)
    except (ValueError, OperationalError) as e:
        logger.error(f"Database unavailable: {e}")
    else:
        try:
            database_ok = pool.ping()
        finally:
            pool.close()

    with Orchestrator(settings, sink=None, platforms=args.platform) as orchestrator:
        platforms = orchestrator.check_platforms()

    report = {"database": database_ok, "platforms": platforms}
    print(json.dumps(report, indent=2))
    return EXIT_OK if database_ok and all(platforms.values()) else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import platform orders into the warehouse",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import the current collection date for every enabled platform
  python -m order_ingest.cli.import_cli run

  # Re-import one day for TikTok only
  python -m order_ingest.cli.import_cli run --date 2025-12-30 --platform tiktok

  # Check API and database connectivity
  python -m order_ingest.cli.import_cli check
        """,
    )
    parser.add_argument("--config", default=None, help="Platform settings YAML (default: config/platforms.yaml)")
    parser.add_argument("--env-file", default=None, help="dotenv file to load (default: .env lookup)")
    parser.add_argument("--db-host", default=None, help="Database host (default: DB_HOST)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: DB_PORT)")
    parser.add_argument("--db-name", default=None, help="Database name (default: DB_NAME)")
    parser.add_argument("--db-user", default=None, help="Database user (default: DB_USER)")
    parser.add_argument("--db-password", default=None, help="Database password (default: DB_PASSWORD)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Import orders")
    run_parser.add_argument("--date", default=None, help="Collection date yyyy-MM-dd (default: grace-period aware today)")
    run_parser.add_argument(
        "--platform",
        action="append",
        default=None,
        help="Platform to import; repeat for several (default: all enabled)",
    )
    run_parser.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")

    check_parser = subparsers.add_parser("check", help="Check platform APIs and the database")
    check_parser.add_argument("--platform", action="append", default=None, help="Platform to check")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_FAILED

    try:
        if args.command == "run":
            return run_command(args)
        return check_command(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_FAILED
    except Exception as e:
        logger.error(f"Error during {args.command}: {e}", exc_info=True)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
