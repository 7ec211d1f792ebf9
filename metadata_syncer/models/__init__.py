"""Data models for the metadata syncer."""

from .discovery import (  # noqa: F401
    DiscoveryResult,
    FullSyncSnapshot,
    SkippedItem,
)
from .enums import BackendVolumeType, ConfigMapEventType  # noqa: F401
from .events import ConfigMapEvent  # noqa: F401
from .query import (  # noqa: F401
    BackendVolume,
    QueryCursor,
    QueryFilter,
    QueryResult,
)
from .volume import (  # noqa: F401
    SyncerModel,
    VolumeMigrationMapping,
    VolumeSpec,
)

__all__ = [
    # Discovery models
    "DiscoveryResult",
    "FullSyncSnapshot",
    "SkippedItem",
    # Enums
    "BackendVolumeType",
    "ConfigMapEventType",
    # Event models
    "ConfigMapEvent",
    # Query models
    "BackendVolume",
    "QueryCursor",
    "QueryFilter",
    "QueryResult",
    # Volume models
    "SyncerModel",
    "VolumeMigrationMapping",
    "VolumeSpec",
]
