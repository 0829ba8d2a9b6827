"""
Archive ingestion resource ceilings.

All limits are enforced from declared ZIP metadata before any bytes are
read, and the per-entry limits are enforced again against the bytes actually
streamed.

Dependencies: pydantic_settings
System role: Resource limits for the archive ingestion pipeline
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from backup_engine.configs.base import BaseSettings

MB = 1024 * 1024
GB = 1024 * MB


class ArchiveLimitsSettings(BaseSettings):
    """Ceilings applied to a single uploaded archive."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ARCHIVE_",
        case_sensitive=False,
        extra="ignore",
    )

    max_archive_bytes: int = Field(default=512 * MB, gt=0, description="Largest accepted ZIP")
    max_zip_entries: int = Field(default=50_000, gt=0, description="Entry count ceiling")
    max_media_files: int = Field(default=20_000, gt=0, description="Media entry count ceiling")
    max_media_bytes: int = Field(default=5 * GB, gt=0, description="Aggregate uncompressed media bytes")
    max_media_entry_bytes: int = Field(
        default=256 * MB, gt=0, description="Uncompressed bytes allowed for one media entry"
    )
    max_metadata_entry_bytes: int = Field(
        default=256 * MB, gt=0, description="Uncompressed bytes allowed for one data/*.js file"
    )
    stream_chunk_bytes: int = Field(default=MB, gt=0, description="Read size when streaming entries")
