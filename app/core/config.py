
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Brokerage Ingest API"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"
    max_upload_size_mb: int = 10

    # Database (Postgres in deployed envs, SQLite for local dev)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ingest_dev.db",
        alias="DATABASE_URL",
    )

    # Multi-tenancy default (used when no X-Tenant-ID header is sent)
    default_client_id: str = Field(default="default", alias="DEFAULT_CLIENT_ID")

    # Object storage for error reports
    storage_root: str = Field(default="./storage", alias="STORAGE_ROOT")
    public_base_url: str = Field(
        default="http://localhost:8000/files", alias="PUBLIC_BASE_URL",
    )

    # Batch processing
    batch_timeout_seconds: float | None = Field(
        default=600.0, alias="BATCH_TIMEOUT_SECONDS",
    )  # None disables the global batch deadline
    defer_placeholder_creation: bool = Field(
        default=True, alias="DEFER_PLACEHOLDER_CREATION",
    )  # Roll back placeholder insurers/products created for rows that fail
    progress_log_every: int = Field(default=50, alias="PROGRESS_LOG_EVERY")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

settings = Settings()
