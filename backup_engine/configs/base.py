"""
Shared configuration base.

Every settings module in the backup engine inherits from this class so that
`.env` loading, case handling and unknown-key tolerance behave the same way
for the API process and for the Celery workers.

Dependencies: pydantic_settings
System role: Foundation for all configuration classes
"""

from pydantic import Field
from pydantic_settings import BaseSettings as PydanticBaseSettings, SettingsConfigDict


class BaseSettings(PydanticBaseSettings):
    """Common settings shared by the API and worker processes."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level for configure_logging()",
    )
    service_name: str = Field(
        default="backup-engine",
        description="Name reported in logs and the API title",
    )
