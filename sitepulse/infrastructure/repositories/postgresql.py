# ==============================================================================
# PostgreSQL Repository Implementations
# ==============================================================================
"""
PostgreSQL implementations of the repository interfaces.

Provides:
- PostgreSQLEventRepository: Windowed reads of raw events
- PostgreSQLSessionRepository: Insert-or-skip sessions by session_id
- PostgreSQLPatternRepository: Append-only pattern inserts
- PostgreSQLBusinessRepository: Business lookups and peer group repointing
- PostgreSQLPeerGroupRepository: Peer group snapshots

Every statement runs inside `with conn:`, which commits on success and rolls
back on error.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from sitepulse.base.repositories import (
    BusinessRepository,
    EventRepository,
    PatternRepository,
    PeerGroupRepository,
    SessionRepository,
)
from sitepulse.core.models import (
    BusinessProfile,
    EventType,
    Pattern,
    PeerGroup,
    RawEvent,
    Session,
)
from sitepulse.utils.config import Settings, get_settings
from sitepulse.utils.retry import POSTGRES_RETRY_EXCEPTIONS, retry_light, retry_standard

logger = logging.getLogger(__name__)

# Rows per VALUES page for execute_values
PAGE_SIZE = 1000

# Connection timeout
CONNECT_TIMEOUT = 10

SESSION_COLUMNS = (
    "site_id, session_id, entry_page, exit_page, duration_seconds, page_count, "
    "bounced, converted, journey_path, created_at"
)
PATTERN_COLUMNS = (
    "site_id, pattern_type, description, severity, session_count, "
    "confidence_score, metadata, detected_at"
)
BUSINESS_COLUMNS = "id, site_id, industry, revenue_range, product_types, platform, peer_group_id"


def _add_connect_timeout(conn_string: str) -> str:
    """Add connect_timeout to connection string if not present."""
    if "connect_timeout" not in conn_string:
        separator = "&" if "?" in conn_string else "?"
        return f"{conn_string}{separator}connect_timeout={CONNECT_TIMEOUT}"
    return conn_string


@retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
def _open_connection(conn_string: str) -> psycopg2.extensions.connection:
    return psycopg2.connect(_add_connect_timeout(conn_string))


class PostgreSQLRepositoryMixin:
    """Connection handling shared by the PostgreSQL repositories."""

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the repository.

        Args:
            settings: Application settings. If None, uses get_settings().
        """
        self._settings = settings or get_settings()
        self._conn: psycopg2.extensions.connection | None = None
        self._schema = self._settings.postgres.schema_name

    @property
    def schema(self) -> str:
        """Get the database schema name."""
        return self._schema

    @property
    def conn(self) -> psycopg2.extensions.connection:
        if self._conn is None:
            raise RuntimeError("PostgreSQL connection not established. Call connect() first.")
        return self._conn

    def connect(self) -> None:
        """Establish connection to PostgreSQL, retrying transient failures."""
        self._conn = _open_connection(self._settings.postgres.connection_string)
        logger.info("%s connected (schema=%s)", type(self).__name__, self._schema)

    def rollback(self) -> None:
        """Rollback current transaction."""
        if self._conn is None:
            return
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            logger.warning("Rollback failed: %s", e)

    def close(self) -> None:
        """Close connection and release resources."""
        if self._conn:
            try:
                self._conn.close()
                logger.info("%s connection closed", type(self).__name__)
            except psycopg2.Error as e:
                logger.warning("Error closing connection: %s", e)
            finally:
                self._conn = None


# ==============================================================================
# Events
# ==============================================================================


class PostgreSQLEventRepository(PostgreSQLRepositoryMixin, EventRepository):
    """
    PostgreSQL implementation of EventRepository.

    Events are written by the ingestion service; this repository only reads
    them. Rows with an event_type outside EventType are ignored.
    """

    def _select(self, where: str, params: Sequence) -> list[RawEvent]:
        with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                SELECT site_id, session_id, event_type, event_time, data, created_at
                FROM {self._schema}.events
                WHERE event_type = ANY(%s) AND {where}
                """,
                ([t.value for t in EventType], *params),
            )
            rows = cur.fetchall()

        return [
            RawEvent(
                site_id=row["site_id"],
                session_id=row["session_id"],
                event_type=row["event_type"],
                timestamp=int(row["event_time"].timestamp() * 1000),
                data=row["data"] or {},
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def get_events(
        self, start: datetime, end: datetime, site_id: str | None = None
    ) -> list[RawEvent]:
        if site_id is None:
            events = self._select("created_at >= %s AND created_at < %s", (start, end))
        else:
            events = self._select(
                "created_at >= %s AND created_at < %s AND site_id = %s", (start, end, site_id)
            )
        logger.debug("Read %d events between %s and %s", len(events), start, end)
        return events

    def get_form_events(self, site_id: str, start: datetime, end: datetime) -> list[RawEvent]:
        return self._select(
            "event_type = %s AND site_id = %s AND created_at >= %s AND created_at < %s",
            (EventType.FORM.value, site_id, start, end),
        )

    def get_site_ids(self) -> list[str]:
        with self.conn, self.conn.cursor() as cur:
            cur.execute(f"SELECT DISTINCT site_id FROM {self._schema}.events ORDER BY site_id")
            return [row[0] for row in cur.fetchall()]


# ==============================================================================
# Sessions
# ==============================================================================


def _session_values(session: Session) -> tuple:
    r = session.to_db_record()
    return (
        r["site_id"],
        r["session_id"],
        r["entry_page"],
        r["exit_page"],
        r["duration_seconds"],
        r["page_count"],
        r["bounced"],
        r["converted"],
        r["journey_path"],
        r["created_at"],
    )


class PostgreSQLSessionRepository(PostgreSQLRepositoryMixin, SessionRepository):
    """
    PostgreSQL implementation of SessionRepository.

    Bulk inserts use ON CONFLICT (session_id) DO NOTHING so a re-run over an
    overlapping window leaves existing sessions untouched. RETURNING gives
    the exact number of new rows.
    """

    def insert_new(self, sessions: Sequence[Session]) -> int:
        with self.conn, self.conn.cursor() as cur:
            inserted = execute_values(
                cur,
                f"""
                INSERT INTO {self._schema}.sessions ({SESSION_COLUMNS})
                VALUES %s
                ON CONFLICT (session_id) DO NOTHING
                RETURNING session_id
                """,
                [_session_values(s) for s in sessions],
                page_size=PAGE_SIZE,
                fetch=True,
            )
        logger.debug("Inserted %d of %d sessions", len(inserted), len(sessions))
        return len(inserted)

    def upsert(self, session: Session) -> None:
        with self.conn, self.conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self._schema}.sessions ({SESSION_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (session_id) DO UPDATE SET
                    site_id = EXCLUDED.site_id,
                    entry_page = EXCLUDED.entry_page,
                    exit_page = EXCLUDED.exit_page,
                    duration_seconds = EXCLUDED.duration_seconds,
                    page_count = EXCLUDED.page_count,
                    bounced = EXCLUDED.bounced,
                    converted = EXCLUDED.converted,
                    journey_path = EXCLUDED.journey_path,
                    created_at = EXCLUDED.created_at
                """,
                _session_values(session),
            )

    def get_sessions(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[Session]:
        conditions = ["site_id = %s"]
        params: list = [site_id]
        if start is not None:
            conditions.append("created_at >= %s")
            params.append(start)
        if end is not None:
            conditions.append("created_at < %s")
            params.append(end)
        query = (
            f"SELECT {SESSION_COLUMNS} FROM {self._schema}.sessions "
            f"WHERE {' AND '.join(conditions)} ORDER BY created_at DESC"
        )
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            return [Session(**row) for row in cur.fetchall()]

    def get_latest_created_at(self) -> datetime | None:
        with self.conn, self.conn.cursor() as cur:
            cur.execute(f"SELECT MAX(created_at) FROM {self._schema}.sessions")
            row = cur.fetchone()
            return row[0] if row else None


# ==============================================================================
# Patterns
# ==============================================================================


def _pattern_values(pattern: Pattern) -> tuple:
    r = pattern.to_db_record()
    return (
        r["site_id"],
        r["pattern_type"],
        r["description"],
        r["severity"],
        r["session_count"],
        r["confidence_score"],
        Json(r["metadata"]),
        r["detected_at"],
    )


class PostgreSQLPatternRepository(PostgreSQLRepositoryMixin, PatternRepository):
    """PostgreSQL implementation of PatternRepository. Metadata is stored as JSONB."""

    def insert_many(self, patterns: Sequence[Pattern]) -> int:
        with self.conn, self.conn.cursor() as cur:
            execute_values(
                cur,
                f"INSERT INTO {self._schema}.patterns ({PATTERN_COLUMNS}) VALUES %s",
                [_pattern_values(p) for p in patterns],
                page_size=PAGE_SIZE,
            )
        logger.debug("Inserted %d patterns", len(patterns))
        return len(patterns)

    def create(self, pattern: Pattern) -> None:
        with self.conn, self.conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self._schema}.patterns ({PATTERN_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                _pattern_values(pattern),
            )

    def get_patterns(self, site_id: str, limit: int | None = None) -> list[Pattern]:
        query = (
            f"SELECT {PATTERN_COLUMNS} FROM {self._schema}.patterns "
            "WHERE site_id = %s ORDER BY detected_at DESC"
        )
        params: list = [site_id]
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            return [Pattern.model_validate(dict(row)) for row in cur.fetchall()]


# ==============================================================================
# Businesses and Peer Groups
# ==============================================================================


class PostgreSQLBusinessRepository(PostgreSQLRepositoryMixin, BusinessRepository):
    """PostgreSQL implementation of BusinessRepository."""

    def _select(self, where: str, params: Sequence) -> list[BusinessProfile]:
        with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"SELECT {BUSINESS_COLUMNS} FROM {self._schema}.businesses "
                f"WHERE {where} ORDER BY id",
                params,
            )
            return [BusinessProfile(**row) for row in cur.fetchall()]

    def get_business(self, business_id: str) -> BusinessProfile | None:
        rows = self._select("id = %s", (business_id,))
        return rows[0] if rows else None

    def get_businesses_by_industry(self, industry: str) -> list[BusinessProfile]:
        return self._select("industry = %s", (industry,))

    def get_businesses_without_peer_group(self) -> list[BusinessProfile]:
        return self._select("peer_group_id IS NULL", ())

    def set_peer_group(self, business_id: str, peer_group_id: str) -> None:
        with self.conn, self.conn.cursor() as cur:
            cur.execute(
                f"UPDATE {self._schema}.businesses SET peer_group_id = %s WHERE id = %s",
                (peer_group_id, business_id),
            )


class PostgreSQLPeerGroupRepository(PostgreSQLRepositoryMixin, PeerGroupRepository):
    """PostgreSQL implementation of PeerGroupRepository. Criteria are stored as JSONB."""

    def create(self, peer_group: PeerGroup) -> None:
        r = peer_group.to_db_record()
        with self.conn, self.conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self._schema}.peer_groups
                    (id, criteria, business_ids, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (r["id"], Json(r["criteria"]), r["business_ids"], r["created_at"], r["updated_at"]),
            )

    def get_peer_group(self, peer_group_id: str) -> PeerGroup | None:
        with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                SELECT id, criteria, business_ids, created_at, updated_at
                FROM {self._schema}.peer_groups WHERE id = %s
                """,
                (peer_group_id,),
            )
            row = cur.fetchone()
        return PeerGroup(**row) if row else None


@retry_light(POSTGRES_RETRY_EXCEPTIONS, logger)
def _probe(conn_string: str) -> None:
    psycopg2.connect(_add_connect_timeout(conn_string)).close()


def check_postgresql_connection(settings: Settings | None = None) -> bool:
    """
    Check if PostgreSQL is reachable.

    Args:
        settings: Application settings. If None, uses get_settings().

    Returns:
        True if connection successful, False otherwise
    """
    settings = settings or get_settings()
    try:
        _probe(settings.postgres.connection_string)
        return True
    except psycopg2.Error as e:
        logger.debug("PostgreSQL connection check failed: %s", e)
        return False
