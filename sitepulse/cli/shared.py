# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared utilities, constants, and helper functions used across CLI command modules.

This module provides:
- ANSI color codes and status icons
- Output helpers for status lines
- Repository connection helpers
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

import typer

from sitepulse.infrastructure.repositories import check_postgresql_connection
from sitepulse.utils.config import get_settings

# ==============================================================================
# Constants
# ==============================================================================

# Formats accepted by --start / --end options
DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


# ==============================================================================
# ANSI Colors and Icons
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Colors
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Bright colors
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"
    WARN = "!"
    BULLET = "•"
    ARROW = "→"
    DATABASE = "◆"


# Short aliases
C = Colors
I = Icons  # noqa: E741


# ==============================================================================
# Output Helpers
# ==============================================================================


def print_error(message: str) -> None:
    print(f"{C.BRIGHT_RED}{I.CROSS} {message}{C.RESET}")


def print_success(message: str) -> None:
    print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} {message}")


def print_warning(message: str) -> None:
    print(f"  {C.BRIGHT_YELLOW}{I.WARN}{C.RESET} {message}")


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive command-line datetimes as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ==============================================================================
# Database Helpers
# ==============================================================================


def check_db_connection() -> bool:
    """Check if PostgreSQL is reachable."""
    return check_postgresql_connection(get_settings())


def require_db_connection() -> None:
    """Exit with an error when PostgreSQL is not reachable."""
    if not check_db_connection():
        pg = get_settings().postgres
        print_error(f"Cannot connect to PostgreSQL at {pg.host}:{pg.port}/{pg.database}")
        raise typer.Exit(1)


@contextmanager
def connected(*repos) -> Iterator[tuple]:
    """
    Connect repositories for the duration of a command and close them after.

    Usage:
        with connected(PostgreSQLEventRepository(), PostgreSQLSessionRepository()) as (
            event_repo,
            session_repo,
        ):
            ...
    """
    try:
        for repo in repos:
            repo.connect()
        yield repos
    finally:
        for repo in repos:
            repo.close()
