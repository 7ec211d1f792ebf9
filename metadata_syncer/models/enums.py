"""Enum definitions for the metadata syncer."""

from enum import Enum


class ConfigMapEventType(Enum):
    """Kinds of ConfigMap change delivered by the informer."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


class BackendVolumeType(Enum):
    """Volume flavours reported by the backend catalog."""

    BLOCK = "BLOCK"
    FILE = "FILE"
