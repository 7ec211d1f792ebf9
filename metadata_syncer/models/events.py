"""Informer event payloads."""

from dataclasses import dataclass

from kubernetes.client import V1ConfigMap

from .enums import ConfigMapEventType


@dataclass(frozen=True)
class ConfigMapEvent:
    """A ConfigMap change, type-checked once when the informer receives it."""

    event_type: ConfigMapEventType
    config_map: V1ConfigMap
    old_config_map: V1ConfigMap | None = None

    @property
    def name(self) -> str:
        return self.config_map.metadata.name if self.config_map.metadata else ""

    @property
    def namespace(self) -> str:
        return self.config_map.metadata.namespace if self.config_map.metadata else ""

    @property
    def data(self) -> dict[str, str]:
        return dict(self.config_map.data or {})
