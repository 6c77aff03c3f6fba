"""Application settings and configuration.

This module defines all configuration options for the Civic Guard service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Civic Guard", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./civic_guard.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Automated scoring thresholds (policy, applied on top of the raw score)
    report_approve_threshold: float = Field(default=0.8, alias="REPORT_APPROVE_THRESHOLD")
    report_reject_threshold: float = Field(default=0.3, alias="REPORT_REJECT_THRESHOLD")
    chat_block_threshold: float = Field(default=0.7, alias="CHAT_BLOCK_THRESHOLD")
    chat_hide_threshold: float = Field(default=0.4, alias="CHAT_HIDE_THRESHOLD")
    critical_report_score: float = Field(default=0.8, alias="CRITICAL_REPORT_SCORE")

    # Community consensus thresholds
    consensus_min_votes: int = Field(default=5, alias="CONSENSUS_MIN_VOTES")
    consensus_min_upvotes: int = Field(default=3, alias="CONSENSUS_MIN_UPVOTES")
    chat_report_hide_threshold: int = Field(default=3, alias="CHAT_REPORT_HIDE_THRESHOLD")

    # Chat limits
    chat_max_message_length: int = Field(default=500, alias="CHAT_MAX_MESSAGE_LENGTH")
    chat_warning_suspend_threshold: int = Field(
        default=5,
        alias="CHAT_WARNING_SUSPEND_THRESHOLD",
    )

    # Anonymous report limits
    anonymous_min_length: int = Field(default=20, alias="ANONYMOUS_MIN_LENGTH")
    anonymous_max_length: int = Field(default=2000, alias="ANONYMOUS_MAX_LENGTH")

    # Scoring dispatch: "sync" scores inside the submit call, "background" leaves
    # freshly submitted items to the sweep worker.
    scoring_mode: Literal["sync", "background"] = Field(default="sync", alias="SCORING_MODE")
    scoring_sweep_interval_seconds: float = Field(
        default=2.0,
        alias="SCORING_SWEEP_INTERVAL_SECONDS",
    )
    scoring_sweep_batch_size: int = Field(default=25, alias="SCORING_SWEEP_BATCH_SIZE")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def moderation_thresholds(self) -> dict[str, float]:
        """Return every moderation threshold as a flat dictionary."""
        return {
            "report_approve": self.report_approve_threshold,
            "report_reject": self.report_reject_threshold,
            "chat_block": self.chat_block_threshold,
            "chat_hide": self.chat_hide_threshold,
            "critical_report": self.critical_report_score,
            "consensus_min_votes": float(self.consensus_min_votes),
            "consensus_min_upvotes": float(self.consensus_min_upvotes),
            "chat_report_hide": float(self.chat_report_hide_threshold),
        }


settings = Settings()  # type: ignore[call-arg]
