"""
Celery configuration settings.

Broker and result backend for the workers that run archive and snapshot
jobs. Retry policy applies to the terminal status write, not to the pipeline
body (a failed pipeline marks its job failed and returns).

Dependencies: pydantic, pydantic_settings
System role: Task queue configuration for background backup jobs
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from backup_engine.configs.base import BaseSettings


class CelerySettings(BaseSettings):
    """Celery and RabbitMQ configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CELERY_",
        case_sensitive=False,
        extra="ignore",
    )

    broker_host: str = Field(default="localhost", description="RabbitMQ host")
    broker_port: int = Field(default=5672, description="RabbitMQ port")
    broker_user: str = Field(default="guest", description="RabbitMQ user")
    broker_password: str = Field(default="guest", description="RabbitMQ password")
    broker_vhost: str = Field(default="", description="RabbitMQ virtual host")

    result_backend_host: str = Field(default="localhost", description="Redis host for results")
    result_backend_port: int = Field(default=6379, description="Redis port")
    result_backend_db: int = Field(default=0, description="Redis database number")

    task_serializer: str = Field(default="json")
    result_serializer: str = Field(default="json")
    accept_content: list[str] = Field(default=["json"])
    timezone: str = Field(default="UTC")

    task_max_retries: int = Field(default=3, description="Retries for a task whose terminal write failed")
    task_retry_backoff: int = Field(default=30, description="Retry backoff base in seconds")
    task_retry_backoff_max: int = Field(default=300, description="Maximum retry backoff in seconds")
    task_time_limit: int = Field(default=3600, description="Hard time limit for one backup job")

    @property
    def broker_url(self) -> str:
        """
        Construct RabbitMQ broker URL.

        Returns:
            str: Celery-compatible broker URL
        """
        return (
            f"amqp://{self.broker_user}:{self.broker_password}"
            f"@{self.broker_host}:{self.broker_port}/{self.broker_vhost}"
        )

    @property
    def result_backend_url(self) -> str:
        """Construct Redis result backend URL."""
        return f"redis://{self.result_backend_host}:{self.result_backend_port}/{self.result_backend_db}"
