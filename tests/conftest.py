"""Shared pytest fixtures for metadata syncer tests."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client import (
    CoreV1Api,
    V1ConfigMap,
    V1CSIPersistentVolumeSource,
    V1ObjectMeta,
    V1PersistentVolume,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PersistentVolumeClaimVolumeSource,
    V1PersistentVolumeSpec,
    V1PersistentVolumeStatus,
    V1Pod,
    V1PodSpec,
    V1Volume,
    V1VsphereVirtualDiskVolumeSource,
)

from metadata_syncer.constants import CSI_DRIVER_NAME
from metadata_syncer.core import feature_states as feature_states_module
from metadata_syncer.core.config_loader import FeatureStatesConfigInfo, SyncerConfig
from metadata_syncer.core.feature_states import FeatureStateOrchestrator, FeatureStateStore
from metadata_syncer.core.informer import InformerManager
from metadata_syncer.core.settings import SyncerSettings
from metadata_syncer.models.query import BackendVolume, QueryCursor, QueryFilter, QueryResult
from metadata_syncer.models.volume import VolumeSpec
from metadata_syncer.services import migration as migration_module
from metadata_syncer.syncer.metadata_syncer import MetadataSyncer

FSS_NAME = "internal-feature-states.csi.vsphere.vmware.com"
FSS_NAMESPACE = "vmware-system-csi"


# Kubernetes object builders


def make_csi_pv(name: str, volume_handle: str, phase: str = "Bound", driver: str = CSI_DRIVER_NAME,
                access_modes: list[str] | None = None) -> V1PersistentVolume:
    return V1PersistentVolume(
        metadata=V1ObjectMeta(name=name, resource_version="1"),
        spec=V1PersistentVolumeSpec(
            csi=V1CSIPersistentVolumeSource(driver=driver, volume_handle=volume_handle),
            access_modes=access_modes,
        ),
        status=V1PersistentVolumeStatus(phase=phase),
    )


def make_vsphere_pv(name: str, volume_path: str, phase: str = "Bound",
                    annotations: dict[str, str] | None = None) -> V1PersistentVolume:
    return V1PersistentVolume(
        metadata=V1ObjectMeta(name=name, annotations=annotations, resource_version="1"),
        spec=V1PersistentVolumeSpec(
            vsphere_volume=V1VsphereVirtualDiskVolumeSource(volume_path=volume_path),
        ),
        status=V1PersistentVolumeStatus(phase=phase),
    )


def make_pvc(name: str, namespace: str = "default", volume_name: str | None = None,
             storage_class_name: str | None = None,
             annotations: dict[str, str] | None = None) -> V1PersistentVolumeClaim:
    return V1PersistentVolumeClaim(
        metadata=V1ObjectMeta(name=name, namespace=namespace, annotations=annotations),
        spec=V1PersistentVolumeClaimSpec(
            volume_name=volume_name, storage_class_name=storage_class_name
        ),
    )


def make_pod(name: str, volumes: list[V1Volume], namespace: str = "default") -> V1Pod:
    return V1Pod(
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        spec=V1PodSpec(containers=[], volumes=volumes),
    )


def pvc_volume(name: str, claim_name: str) -> V1Volume:
    return V1Volume(
        name=name,
        persistent_volume_claim=V1PersistentVolumeClaimVolumeSource(claim_name=claim_name),
    )


def inline_vsphere_volume(name: str, volume_path: str, policy: str | None = None) -> V1Volume:
    return V1Volume(
        name=name,
        vsphere_volume=V1VsphereVirtualDiskVolumeSource(
            volume_path=volume_path, storage_policy_name=policy
        ),
    )


def make_configmap(data: dict[str, str] | None, name: str = FSS_NAME,
                   namespace: str = FSS_NAMESPACE, resource_version: str = "1") -> V1ConfigMap:
    return V1ConfigMap(
        metadata=V1ObjectMeta(name=name, namespace=namespace, resource_version=resource_version),
        data=data,
    )


# Backend fake


class FakeVolumeManager:
    """In-memory backend catalog paging through a fixed list of volumes."""

    def __init__(self, volume_ids: list[str] | None = None, registrations: dict[str, str] | None = None):
        self.volumes = [BackendVolume(volume_id=v) for v in volume_ids or []]
        self.registrations = registrations or {}
        self.query_calls: list[QueryFilter] = []
        self.register_calls: list[VolumeSpec] = []

    async def query_volume(self, query_filter: QueryFilter) -> QueryResult | None:
        self.query_calls.append(query_filter)
        matching = [
            v for v in self.volumes
            if not query_filter.volume_ids or v.volume_id in query_filter.volume_ids
        ]
        if not matching:
            return None
        start = query_filter.cursor.offset
        page = matching[start:start + query_filter.cursor.limit]
        return QueryResult(
            volumes=page,
            cursor=QueryCursor(
                offset=start + len(page),
                limit=query_filter.cursor.limit,
                total_records=len(matching),
            ),
        )

    async def register_legacy_volume(self, spec: VolumeSpec) -> str:
        self.register_calls.append(spec)
        if spec.volume_path not in self.registrations:
            raise RuntimeError(f"disk {spec.volume_path} not found")
        return self.registrations[spec.volume_path]


# Fixtures


@pytest.fixture(autouse=True)
def reset_process_wide_cells():
    """Give every test a fresh orchestrator and migration service cell."""
    feature_states_module._orchestrator_cell.reset()
    migration_module._service_cell.reset()
    yield
    feature_states_module._orchestrator_cell.reset()
    migration_module._service_cell.reset()


@pytest.fixture
def config_info() -> FeatureStatesConfigInfo:
    return FeatureStatesConfigInfo(name=FSS_NAME, namespace=FSS_NAMESPACE)


@pytest.fixture
def core_api() -> MagicMock:
    return MagicMock(spec=CoreV1Api)


@pytest.fixture
def informer_manager(core_api: MagicMock) -> InformerManager:
    return InformerManager(core_api)


@pytest.fixture
def orchestrator(config_info: FeatureStatesConfigInfo) -> FeatureStateOrchestrator:
    return FeatureStateOrchestrator(config_info, FeatureStateStore({"csi-migration": "true"}))


@pytest.fixture
def volume_manager() -> FakeVolumeManager:
    return FakeVolumeManager()


@pytest.fixture
def syncer_config() -> SyncerConfig:
    return SyncerConfig(cluster_id="cluster-1")


@pytest.fixture
def syncer(syncer_config, orchestrator, informer_manager, volume_manager) -> MetadataSyncer:
    return MetadataSyncer(
        syncer_config,
        orchestrator,
        informer_manager,
        volume_manager,
        settings=SyncerSettings(FULL_SYNC_QUERY_LIMIT=2, FULL_SYNC_TIMEOUT=5),
    )
