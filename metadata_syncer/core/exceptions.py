"""Core exceptions for metadata syncer operations."""


class MetadataSyncerError(Exception):
    """Base exception for metadata syncer operations."""


class ConfigurationError(MetadataSyncerError):
    """Configuration validation or loading failed."""


class FeatureStateError(MetadataSyncerError):
    """Feature state orchestrator could not be initialized."""


class MigrationServiceError(MetadataSyncerError):
    """Volume migration service could not be constructed or reached."""


class VolumeIDNotFoundError(MigrationServiceError):
    """No canonical volume ID could be resolved for a legacy volume."""


class StorageClassNotSpecifiedError(MetadataSyncerError):
    """PVC carries neither a storage class name nor the legacy annotation."""


class BackendQueryError(MetadataSyncerError):
    """Backend volume catalog query failed."""
