"""Interface to the storage backend's volume catalog.

The RPC transport lives outside this package; anything that implements
VolumeManager can be handed to the query engine and the migration service.
"""

from typing import Protocol, runtime_checkable

from ..models.query import QueryFilter, QueryResult
from ..models.volume import VolumeSpec


@runtime_checkable
class VolumeManager(Protocol):
    """Backend operations the syncer depends on."""

    async def query_volume(self, query_filter: QueryFilter) -> QueryResult | None:
        """Return one page of volumes matching query_filter, or None when there is nothing more."""
        ...

    async def register_legacy_volume(self, spec: VolumeSpec) -> str:
        """Register a legacy volume path with the backend and return its canonical volume ID."""
        ...
