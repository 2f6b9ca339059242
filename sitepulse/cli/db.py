# ==============================================================================
# Database Commands
# ==============================================================================
"""
Database schema commands for the sitepulse CLI.
"""

from typing import Annotated

import psycopg2
import typer

from sitepulse.cli.shared import C, I, print_error, print_success
from sitepulse.utils.config import get_settings
from sitepulse.utils.db import ensure_schema, reset_schema


# ==============================================================================
# Commands
# ==============================================================================


def db_init() -> None:
    """Create the database and schema if they do not exist.

    Safe to run repeatedly.

    Examples:
        sitepulse db init
    """
    settings = get_settings()
    schema_name = settings.postgres.schema_name

    print()
    print(f"  {C.CYAN}{I.DATABASE}{C.RESET} Initializing schema '{C.WHITE}{schema_name}{C.RESET}'...")
    try:
        created = ensure_schema(settings)
    except (RuntimeError, psycopg2.Error) as e:
        print_error(f"Failed to initialize schema: {e}")
        raise typer.Exit(1)

    if created:
        print_success(f"Schema '{schema_name}' created")
    else:
        print_success(f"Schema '{schema_name}' already exists")
    print()


def db_reset(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Drop and recreate the schema, deleting all data.

    Examples:
        sitepulse db reset       # With confirmation prompt
        sitepulse db reset -y    # Skip confirmation
    """
    settings = get_settings()
    schema_name = settings.postgres.schema_name

    if not confirm:
        typer.confirm(
            f"This will DELETE all data in schema '{schema_name}'. Are you sure?",
            abort=True,
        )

    print()
    print(f"  Resetting PostgreSQL schema '{C.WHITE}{schema_name}{C.RESET}'...")
    try:
        reset_schema(settings)
    except (RuntimeError, psycopg2.Error) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Schema '{schema_name}' reset")
    print()
