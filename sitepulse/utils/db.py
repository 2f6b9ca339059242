# ==============================================================================
# Database Utilities
# ==============================================================================
"""
Schema management for the sitepulse database.

The schema lives in schema/init.sql as a Jinja2 template parameterized by
schema name. Connection errors are retried with exponential backoff.
"""

import logging
from pathlib import Path

import psycopg2
from jinja2 import Template

from sitepulse.utils.config import Settings, get_settings
from sitepulse.utils.paths import get_init_sql_path
from sitepulse.utils.retry import POSTGRES_RETRY_EXCEPTIONS, retry_standard

logger = logging.getLogger(__name__)

# Tables created by schema/init.sql
SCHEMA_TABLES = ("events", "sessions", "patterns", "businesses", "peer_groups")


def get_schema_file() -> Path | None:
    """Get the schema init.sql path, or None if not found."""
    path = get_init_sql_path()
    if path.exists():
        return path
    cwd_path = Path.cwd() / "schema" / "init.sql"
    if cwd_path.exists():
        return cwd_path
    return None


def render_schema_sql(schema_name: str) -> str:
    """Render the schema SQL template with the given schema name."""
    schema_file = get_schema_file()
    if not schema_file:
        raise RuntimeError(
            "Schema file (schema/init.sql) not found. "
            "Make sure you're running from the project root."
        )

    template = Template(schema_file.read_text())
    return template.render(schema_name=schema_name)


@retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
def ensure_database_exists(settings: Settings | None = None) -> None:
    """
    Ensure the target database exists, creating it if needed.

    Connects to the 'postgres' maintenance database to check for and create
    the target database.

    Raises:
        RuntimeError: If database creation fails
    """
    settings = settings or get_settings()
    pg = settings.postgres
    admin_conn_string = (
        f"postgresql://{pg.user}:{pg.password}@{pg.host}:{pg.port}/postgres"
        f"?sslmode={pg.sslmode}"
    )

    try:
        conn = psycopg2.connect(admin_conn_string, connect_timeout=5)
    except POSTGRES_RETRY_EXCEPTIONS:
        raise
    except psycopg2.Error as e:
        raise RuntimeError(f"Failed to ensure database exists: {e}") from e

    # CREATE DATABASE cannot run inside a transaction
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (pg.database,))
            if cur.fetchone() is None:
                logger.info("Creating database '%s'...", pg.database)
                cur.execute(f'CREATE DATABASE "{pg.database}"')
                logger.info("Database '%s' created.", pg.database)
    finally:
        conn.close()


@retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
def check_schema_exists(settings: Settings | None = None) -> bool:
    """Check if the schema has been initialized (sessions table present)."""
    settings = settings or get_settings()
    with psycopg2.connect(settings.postgres.connection_string, connect_timeout=5) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = %s
                    AND table_name = 'sessions'
                )
                """,
                (settings.postgres.schema_name,),
            )
            result = cur.fetchone()
            return bool(result and result[0])


def ensure_schema(settings: Settings | None = None) -> bool:
    """
    Ensure database schema exists, initializing if needed.

    Idempotent and safe to call multiple times. Creates the database first
    if it doesn't exist.

    Returns:
        True if the schema was created, False if it already existed

    Raises:
        RuntimeError: If schema file not found or initialization fails
    """
    settings = settings or get_settings()
    ensure_database_exists(settings)

    if check_schema_exists(settings):
        return False

    schema_name = settings.postgres.schema_name
    logger.info("Initializing database schema '%s'...", schema_name)

    schema_sql = render_schema_sql(schema_name)
    try:
        with psycopg2.connect(settings.postgres.connection_string) as conn:
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()
    except psycopg2.Error as e:
        raise RuntimeError(f"Failed to initialize schema: {e}") from e

    logger.info("Database schema '%s' initialized.", schema_name)
    return True


def reset_schema(settings: Settings | None = None) -> None:
    """
    Drop and recreate the database schema.

    WARNING: This deletes all data in the schema!
    """
    settings = settings or get_settings()
    schema_name = settings.postgres.schema_name
    schema_sql = render_schema_sql(schema_name)

    try:
        with psycopg2.connect(settings.postgres.connection_string) as conn:
            with conn.cursor() as cur:
                cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
                cur.execute(schema_sql)
            conn.commit()
    except psycopg2.Error as e:
        raise RuntimeError(f"Failed to reset schema: {e}") from e

    logger.info("Database schema '%s' reset.", schema_name)
