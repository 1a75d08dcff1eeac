"""
Command line entry point.

Usage:
    library-circulation init-db [--drop-existing] [--seed-settings]
    library-circulation seed-settings
    library-circulation expire-reservations
    library-circulation serve-api [--host HOST] [--port PORT]
    library-circulation serve-mcp

``expire-reservations`` is meant to be run periodically, e.g. from cron.
"""

import argparse
import logging
import sys

from .config import get_config
from .database.errors import RepositoryException
from .database.reservation_repository import ReservationRepository
from .database.session import get_db_manager, reset_db_manager
from .database.settings_repository import SettingsRepository
from .observability import configure_logging, initialize_observability

logger = logging.getLogger(__name__)


def init_db(args: argparse.Namespace) -> int:
    db_manager = get_db_manager(args.database_url)
    if not db_manager.can_connect():
        logger.error("Failed to connect to database")
        return 1

    db_manager.init_database(drop_existing=args.drop_existing)
    if args.seed_settings:
        return seed_settings(args)
    return 0


def seed_settings(args: argparse.Namespace) -> int:
    db_manager = get_db_manager(args.database_url)
    db_manager.init_database()
    with db_manager.session_scope("seed settings") as session:
        rows = SettingsRepository(session).seed_defaults()
    logger.info("Settings configured for %d member type(s)", len(rows))
    return 0


def expire_reservations(args: argparse.Namespace) -> int:
    with get_db_manager(args.database_url).session_scope("expire reservations") as session:
        result = ReservationRepository(session).expire_old()
    print(f"Expired {result.expired_count} reservation(s)")
    return 0


def serve_api(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    config = get_config()
    get_db_manager(args.database_url).init_database()
    uvicorn.run(
        create_app(config),
        host=args.host or config.api_host,
        port=args.port or config.api_port,
        log_level=config.log_level.lower(),
    )
    return 0


def serve_mcp(args: argparse.Namespace) -> int:
    from .server import run_stdio_server

    get_db_manager(args.database_url)
    run_stdio_server()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="library-circulation",
        description="Library circulation service: reservations, loans and fines",
    )
    parser.add_argument("--database-url", help="Override the configured database URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init-db", help="Create the database schema")
    init.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    init.add_argument(
        "--seed-settings",
        action="store_true",
        help="Insert the default loan/fine settings after creating tables",
    )
    init.set_defaults(func=init_db)

    seed = subparsers.add_parser("seed-settings", help="Insert missing default settings rows")
    seed.set_defaults(func=seed_settings)

    expire = subparsers.add_parser(
        "expire-reservations", help="Expire active reservations past their expiry date"
    )
    expire.set_defaults(func=expire_reservations)

    api = subparsers.add_parser("serve-api", help="Run the REST API with uvicorn")
    api.add_argument("--host", help="Bind address (defaults to LIBRARY_API_HOST)")
    api.add_argument("--port", type=int, help="Port (defaults to LIBRARY_API_PORT)")
    api.set_defaults(func=serve_api)

    mcp = subparsers.add_parser("serve-mcp", help="Run the tool server on stdio")
    mcp.set_defaults(func=serve_mcp)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config)
    initialize_observability(config)

    try:
        return args.func(args)
    except RepositoryException:
        logger.exception("Command %s failed", args.command)
        return 1
    finally:
        reset_db_manager()


if __name__ == "__main__":
    sys.exit(main())
