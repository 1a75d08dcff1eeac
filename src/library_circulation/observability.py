"""Logging and logfire tracing for the circulation service."""

import functools
import logging
import sys
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import logfire

from .config import LibraryConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: LibraryConfig) -> None:
    """Configure root logging on stderr.

    stdout stays clean for the stdio tool transport.
    """
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    if not config.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def initialize_observability(config: LibraryConfig) -> None:
    """Configure logfire for this process."""
    logfire.configure(
        token=config.logfire_token,
        service_name=config.server_name,
        service_version=config.server_version,
        environment=config.environment,
        send_to_logfire="if-token-present",
        console=False,
    )
    logger.debug("Observability initialized for environment %s", config.environment)


@contextmanager
def trace_repository_operation(repository: str, operation: str, table: str | None = None):
    """Context manager for tracing repository operations."""
    with logfire.span(
        f"db.{repository}.{operation}",
        db_repository=repository,
        db_operation=operation,
        db_table=table or repository,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("db.error", str(e))
            raise


def trace_tool(tool_name: str):
    """Decorator to trace tool handler execution."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(f"tool.execution.{tool_name}", tool_name=tool_name) as span:
                start_time = datetime.now()
                result = await func(*args, **kwargs)

                span.set_attribute("tool.success", not _is_error(result))
                span.set_attribute(
                    "tool.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def _is_error(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("isError"))
