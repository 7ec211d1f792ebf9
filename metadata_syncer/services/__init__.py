"""
Metadata Syncer Services

Collaborators the syncer talks to: the backend volume catalog and the
volume migration service.
"""

from .backend import VolumeManager  # noqa: F401
from .migration import (  # noqa: F401
    ConfigMapMappingStore,
    InMemoryMappingStore,
    MappingStore,
    VolumeMigrationService,
    get_volume_migration_service,
)

__all__ = [
    "VolumeManager",
    "MappingStore",
    "InMemoryMappingStore",
    "ConfigMapMappingStore",
    "VolumeMigrationService",
    "get_volume_migration_service",
]
