"""Application configuration using Pydantic Settings."""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "reading-tracker"
    app_version: str = "0.1.0"
    debug: bool = False

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    public_base_url: str = "http://localhost:8000"

    # Logging
    log_level: str = "INFO"

    # Storage backend: in-memory for development, DynamoDB + S3 otherwise
    storage_backend: Literal["local", "aws"] = "local"
    aws_region: str = "us-west-2"
    books_table_name: str = "ReadingTracker"
    covers_bucket_name: str = "reading-tracker-covers"

    # Covers
    placeholder_base_url: str = "https://picsum.photos"
    max_cover_bytes: int = Field(default=5 * 1024 * 1024, ge=1)

    # Identity provider tokens
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None

    # Session commits
    optimistic_concurrency: bool = True
    commit_conflict_retries: int = Field(default=3, ge=0)


# Create a singleton instance
settings = Settings()
