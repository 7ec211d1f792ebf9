"""Timeout and paging settings for metadata syncer operations.

Provides centralized tuning configuration using Pydantic BaseSettings
with environment variable support.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import QUERY_VOLUME_LIMIT


class SyncerSettings(BaseSettings):
    """Full sync and Kubernetes API tuning configuration."""

    full_sync_query_limit: int = Field(
        QUERY_VOLUME_LIMIT,
        alias="FULL_SYNC_QUERY_LIMIT",
        gt=0,
        description="Number of volumes requested per backend query page",
    )

    full_sync_timeout: float = Field(
        300, alias="FULL_SYNC_TIMEOUT", gt=0, description="Deadline for one paginated query in seconds"
    )

    configmap_fetch_timeout: float = Field(
        30,
        alias="CONFIGMAP_FETCH_TIMEOUT",
        gt=0,
        description="Deadline for the initial feature states ConfigMap fetch in seconds",
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL", description="Root log level")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


def get_settings() -> SyncerSettings:
    """Read settings from the environment."""
    return SyncerSettings()
