"""Results produced by a discovery or full sync pass."""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from kubernetes.client import V1PersistentVolume

from .query import QueryResult

T = TypeVar("T")


@dataclass(frozen=True)
class SkippedItem:
    """An item left out of a pass, with the reason."""

    name: str
    reason: str


@dataclass
class DiscoveryResult(Generic[T]):
    """Collected items plus diagnostics for the ones that were skipped."""

    items: T
    skipped: list[SkippedItem] = field(default_factory=list)

    def skip(self, name: str, reason: str) -> None:
        self.skipped.append(SkippedItem(name=name, reason=reason))


@dataclass
class FullSyncSnapshot:
    """Cluster-side candidates and backend catalog pages gathered by one full sync pass."""

    pvs: list[V1PersistentVolume]
    pv_volume_ids: dict[str, str]
    inline_volumes: dict[str, str]
    query_results: list[QueryResult]
    skipped: list[SkippedItem] = field(default_factory=list)

    @property
    def backend_volume_ids(self) -> set[str]:
        return {volume.volume_id for result in self.query_results for volume in result.volumes}

    @property
    def cluster_volume_ids(self) -> set[str]:
        return set(self.pv_volume_ids) | set(self.inline_volumes)

    @property
    def missing_from_backend(self) -> set[str]:
        """Volume IDs the cluster references that the backend catalog does not list."""
        return self.cluster_volume_ids - self.backend_volume_ids

    @property
    def unknown_to_cluster(self) -> set[str]:
        """Volume IDs in the backend catalog that no cluster object references."""
        return self.backend_volume_ids - self.cluster_volume_ids
