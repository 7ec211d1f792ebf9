"""Configuration management for the metadata syncer."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from ..constants import (
    DEFAULT_CSI_NAMESPACE,
    DEFAULT_FEATURE_STATES_CONFIGMAP_NAME,
    DEFAULT_MIGRATION_CONFIGMAP_NAME,
    ENV_SYNCER_CONFIG,
)
from .exceptions import ConfigurationError

logger = structlog.get_logger()


class FeatureStatesConfigInfo(BaseModel):
    """Location of the ConfigMap holding feature state switches."""

    name: str = DEFAULT_FEATURE_STATES_CONFIGMAP_NAME
    namespace: str = DEFAULT_CSI_NAMESPACE

    model_config = {"frozen": True}


class MigrationConfig(BaseModel):
    """Where legacy volume to volume ID mappings are persisted."""

    configmap_name: str = DEFAULT_MIGRATION_CONFIGMAP_NAME
    configmap_namespace: str = DEFAULT_CSI_NAMESPACE


class InformerConfig(BaseModel):
    """Watch settings for the Kubernetes informers."""

    watch_timeout_seconds: int = 300


class SyncerConfig(BaseSettings):
    """Main configuration for the metadata syncer."""

    cluster_id: str = Field(default="", alias="CLUSTER_ID")
    feature_states: FeatureStatesConfigInfo = Field(default_factory=FeatureStatesConfigInfo)
    migration: MigrationConfig = Field(default_factory=MigrationConfig)
    informer: InformerConfig = Field(default_factory=InformerConfig)
    config_file: str = Field(default="config/syncer.yml", alias=ENV_SYNCER_CONFIG)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


def load_config(config_path: str | None = None) -> SyncerConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        This function cannot be called from a running event loop.
        For async code, use load_config_async() instead.
    """
    try:
        asyncio.get_running_loop()
        raise RuntimeError(
            "load_config() cannot be called from within an async context. "
            "Use 'await load_config_async()' instead."
        )
    except RuntimeError as e:
        if "no running event loop" in str(e).lower():
            return asyncio.run(load_config_async(config_path))
        raise


async def load_config_async(config_path: str | None = None) -> SyncerConfig:
    """Load configuration from multiple sources (async interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration
    """
    load_dotenv()

    config = SyncerConfig()

    default_config_file = os.getenv(ENV_SYNCER_CONFIG, config.config_file)
    project_config_path = Path(config_path or default_config_file)
    await _load_config_file(config, project_config_path)
    config.config_file = str(project_config_path)

    # Environment variables win over the file
    _apply_env_overrides(config)

    logger.info(
        "Configuration loaded",
        path=str(project_config_path),
        cluster_id=config.cluster_id,
        feature_states_configmap=config.feature_states.name,
        feature_states_namespace=config.feature_states.namespace,
    )
    return config


async def _load_config_file(config: SyncerConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        logger.debug("Configuration file not found, using defaults", path=str(config_path))
        return

    yaml_config = await _load_yaml_config(config_path)
    try:
        _apply_cluster_config(config, yaml_config)
        _apply_feature_states_config(config, yaml_config)
        _apply_section(config, yaml_config, "migration", MigrationConfig)
        _apply_section(config, yaml_config, "informer", InformerConfig)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e


def _apply_cluster_config(config: SyncerConfig, yaml_config: dict[str, Any]) -> None:
    """Apply the cluster identifier from YAML data."""
    if yaml_config.get("cluster_id"):
        config.cluster_id = str(yaml_config["cluster_id"])


def _apply_feature_states_config(config: SyncerConfig, yaml_config: dict[str, Any]) -> None:
    """Apply the feature states ConfigMap location from YAML data."""
    section = yaml_config.get("feature_states")
    if not section:
        return
    merged = config.feature_states.model_dump()
    merged.update(section)
    config.feature_states = FeatureStatesConfigInfo(**merged)


def _apply_section(
    config: SyncerConfig, yaml_config: dict[str, Any], key: str, model: type[BaseModel]
) -> None:
    """Merge one nested section of YAML data over its defaults."""
    section = yaml_config.get(key)
    if not section:
        return
    merged = getattr(config, key).model_dump()
    merged.update(section)
    setattr(config, key, model(**merged))


def _apply_env_overrides(config: SyncerConfig) -> None:
    """Apply environment variable overrides."""
    if cluster_id := os.getenv("CLUSTER_ID"):
        config.cluster_id = cluster_id
    name = os.getenv("FEATURE_STATES_CONFIGMAP_NAME")
    namespace = os.getenv("FEATURE_STATES_CONFIGMAP_NAMESPACE")
    if name or namespace:
        config.feature_states = FeatureStatesConfigInfo(
            name=name or config.feature_states.name,
            namespace=namespace or config.feature_states.namespace,
        )


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)
        content = _expand_yaml_config(content)

        loaded = yaml.safe_load(content)
        # yaml.safe_load can return None, str, list, etc.
        if not isinstance(loaded, dict):
            return {}
        return loaded
    except Exception as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e


def _expand_yaml_config(content: str) -> str:
    """Securely expand environment variables with allowlist."""

    allowed_env_vars = {
        "HOME",
        "CLUSTER_ID",
        "CSI_NAMESPACE",
        "POD_NAMESPACE",
        "FEATURE_STATES_CONFIGMAP_NAME",
        "FEATURE_STATES_CONFIGMAP_NAMESPACE",
        ENV_SYNCER_CONFIG,
    }

    def replace_if_allowed(match):
        var_name = match.group(1)
        original_pattern = match.group(0)

        if var_name in allowed_env_vars:
            return os.getenv(var_name, original_pattern)  # Keep original if not found
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
            pattern=original_pattern,
        )
        return original_pattern

    content = re.sub(r"\$\{([^}]+)\}", replace_if_allowed, content)
    content = re.sub(r"\$([A-Za-z_][A-Za-z0-9_]*)", replace_if_allowed, content)

    return content
