"""
Configuration and settings for the FoundIt service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", alias="FOUNDIT_LOG_LEVEL")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # S3-compatible object storage
    s3_endpoint: Optional[str] = Field(default=None, alias="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, alias="S3_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None, alias="STORAGE_PUBLIC_BASE_URL"
    )
    item_images_prefix: str = Field(default="item-images")
    avatars_prefix: str = Field(default="avatars")
    max_image_bytes: int = Field(default=5 * 1024 * 1024)

    # Sessions
    jwt_secret_key: str = Field(
        default="dev-secret-key-change-in-production", alias="SECRET_KEY"
    )
    jwt_algorithm: str = Field(default="HS256")
    session_expire_minutes: int = Field(default=60 * 24 * 7)
    min_password_length: int = Field(default=6)

    # Winner selection: one conditional transaction, or the legacy three writes
    atomic_winner_selection: bool = Field(
        default=True, alias="FOUNDIT_ATOMIC_WINNER_SELECTION"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="FOUNDIT_USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
