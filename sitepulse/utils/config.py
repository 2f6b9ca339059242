# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="postgres", description="PostgreSQL username")
    password: str = Field(default="postgres", description="PostgreSQL password")
    database: str = Field(default="sitepulse", description="Database name")
    schema_name: str = Field(default="sitepulse", description="Schema name")
    sslmode: str = Field(default="prefer", description="SSL mode")

    @property
    def connection_string(self) -> str:
        """Build PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class AggregationSettings(BaseSettings):
    """Session aggregation job settings."""

    model_config = SettingsConfigDict(env_prefix="AGGREGATION_")

    batch_size: int = Field(
        default=1000, ge=1, description="Sessions built and written per batch"
    )
    lookback_hours: int = Field(
        default=24,
        ge=1,
        description="Window start when no session has been stored yet (hours before now)",
    )


class PatternSettings(BaseSettings):
    """Pattern detection thresholds.

    Rates are percentages. A cohort (funnel stage, form field or page) must
    have at least min_sessions sessions to be reported.
    """

    model_config = SettingsConfigDict(env_prefix="PATTERNS_")

    min_sessions: int = Field(default=100, ge=1, description="Minimum cohort size")
    abandonment_rate: float = Field(
        default=30.0, description="Drop-off rate above which a stage is flagged"
    )
    hesitation_rate: float = Field(
        default=20.0, description="Field re-entry rate above which a field is flagged"
    )
    low_engagement_ratio: float = Field(
        default=0.7, gt=0, le=1, description="Fraction of the site average time-on-page"
    )
    analysis_window_days: int = Field(
        default=7, ge=1, description="Days of data analyzed per detection run"
    )


class PeerMatchingSettings(BaseSettings):
    """Peer group calculation settings."""

    model_config = SettingsConfigDict(env_prefix="PEERS_")

    min_group_size: int = Field(default=10, ge=1, description="Matches a tier needs to win")
    acceptable_group_size: int = Field(
        default=5, ge=0, description="Fallback groups smaller than this are logged"
    )
    max_peers: int = Field(default=50, ge=1, description="Peers kept per group")
    time_budget_ms: int = Field(
        default=500, description="Soft budget for one calculation; overruns are logged"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    patterns: PatternSettings = Field(default_factory=PatternSettings)
    peers: PeerMatchingSettings = Field(default_factory=PeerMatchingSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
