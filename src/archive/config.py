"""Service configuration loaded from environment variables."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug logging and API documentation.
        shutdown_timeout: Seconds to wait for background tasks on shutdown.
        key: API key protecting the admin endpoints. Empty disables auth.
        database_path: SQLite file holding records and index operations.
        opensearch_url: Base URL of the OpenSearch cluster.
        opensearch_index: Name of the search index.
        opensearch_verify_certs: Verify TLS certificates of the cluster.
        max_retries: Failed attempts after which an operation is dead-lettered.
        backoff_base_seconds: Multiplier for the 2^n retry backoff.
        dispatcher_fault_delay_seconds: Pause after an unexpected loop fault.
        recovery_batch_size: Operations republished from storage on startup.
        sweep_initial_delay_seconds: Quiet period before the first sweep.
        sweep_fallback_delay_seconds: Pause when a sweep cycle cannot start.
        default_sync_interval_minutes: Sweep interval for a fresh configuration.
        bulk_batch_size: Documents per bulk request during a full reindex.
        reindex_retention_seconds: How long finished reindex sessions stay visible.
        dead_letter_report_limit: Dead letters listed in the queue status.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARCHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    shutdown_timeout: float = 30.0
    key: str = ""

    database_path: str = "archive.db"
    opensearch_url: str = "http://opensearch:9200"
    opensearch_index: str = "archive_videos"
    opensearch_verify_certs: bool = True

    max_retries: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    dispatcher_fault_delay_seconds: float = 5.0
    recovery_batch_size: int = Field(default=100, ge=1)

    sweep_initial_delay_seconds: float = 60.0
    sweep_fallback_delay_seconds: float = 300.0
    default_sync_interval_minutes: int = Field(default=30, gt=0)

    bulk_batch_size: int = Field(default=100, ge=1)
    reindex_retention_seconds: float = 3600.0
    dead_letter_report_limit: int = 10
