"""
Blob storage configuration.

Bucket and client settings for the S3-compatible object store that holds
staged uploads, extracted media and archived ZIP files.

Dependencies: pydantic_settings
System role: Blob storage configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from backup_engine.configs.base import BaseSettings


class StorageSettings(BaseSettings):
    """Settings for the media bucket."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BLOB_STORAGE_",
        case_sensitive=False,
        extra="ignore",
    )

    bucket: str = Field(
        default="backup-engine-dev-media",
        description="Bucket holding media objects and archives",
    )
    region: str = Field(
        default="auto",
        description="Region for the bucket ('auto' for R2)",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores (R2, MinIO)",
    )
    delete_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Objects removed per delete_objects call",
    )
