"""Library circulation tool server.

Exposes the reservation tools over stdio using FastMCP. Logs go to stderr
so stdout stays reserved for the protocol.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import LibraryConfig, get_config
from .database.session import get_db_manager
from .observability import configure_logging, initialize_observability
from .tools import all_tools

logger = logging.getLogger(__name__)


def create_server(config: LibraryConfig | None = None) -> FastMCP:
    """Build the FastMCP server and register every tool."""
    config = config or get_config()

    mcp = FastMCP(
        name=config.server_name,
        version=config.server_version,
        instructions=(
            "Library circulation server. Reserve books that have no copies available, "
            "inspect a book's reservation queue in FIFO order, cancel or fulfil holds, "
            "and expire holds that have passed their expiry date."
        ),
    )

    for tool in all_tools:
        logger.debug("Registering tool: %s", tool["name"])
        try:
            mcp.tool(
                name=tool["name"],
                description=tool["description"],
            )(tool["handler"])
        except Exception:
            logger.exception("Failed to register tool %s", tool["name"])
            raise

    logger.info("Registered %d tools", len(all_tools))
    return mcp


def run_stdio_server(config: LibraryConfig | None = None) -> None:
    """Run the tool server on stdio until the client disconnects or a signal arrives."""
    config = config or get_config()
    configure_logging(config)
    initialize_observability(config)

    if not config.debug:
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    get_db_manager().init_database()
    mcp = create_server(config)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)
    try:
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in tool server")
        sys.exit(1)
