"""Full sync candidate discovery over the informer caches.

Discovery is best effort per item: a volume that cannot be classified or
resolved is logged and left out, never allowed to fail the pass.
"""

from typing import Protocol

import structlog
from kubernetes.client import (
    V1PersistentVolume,
    V1PersistentVolumeClaim,
    V1Pod,
    V1Volume,
)

from ..constants import CSI_MIGRATION, FULL_SYNC_PHASES, PV_PHASE_BOUND
from ..core.exceptions import MigrationServiceError
from ..core.feature_states import FeatureStateOrchestrator
from ..core.informer import (
    ObjectNotFoundError,
    PersistentVolumeClaimLister,
    PersistentVolumeLister,
    PodLister,
)
from ..models.discovery import DiscoveryResult
from ..models.volume import VolumeSpec
from ..services.migration import VolumeMigrationService
from .validation import is_csi_volume, is_in_tree_volume, is_valid_vsphere_volume

logger = structlog.get_logger()


class SyncerContext(Protocol):
    """What discovery reads: informer listers, feature states and the migration service."""

    orchestrator: FeatureStateOrchestrator
    pv_lister: PersistentVolumeLister
    pvc_lister: PersistentVolumeClaimLister
    pod_lister: PodLister
    migration_service: VolumeMigrationService | None


def _phase(pv: V1PersistentVolume) -> str | None:
    return pv.status.phase if pv.status else None


def get_pvs_in_bound_available_or_released(syncer: SyncerContext) -> list[V1PersistentVolume]:
    """PVs owned by the driver, or migrated in-tree PVs, in Bound, Available or Released phase."""
    logger.debug("FullSync: getting all PVs in Bound, Available or Released state")
    migration_enabled = syncer.orchestrator.is_enabled(CSI_MIGRATION)
    pvs_in_desired_state = []
    for pv in syncer.pv_lister.list():
        owned = is_csi_volume(pv) or (
            migration_enabled and is_in_tree_volume(pv) and is_valid_vsphere_volume(pv.metadata)
        )
        if not owned:
            continue
        logger.debug("FullSync: pv phase", pv_name=pv.metadata.name, phase=_phase(pv))
        if _phase(pv) in FULL_SYNC_PHASES:
            pvs_in_desired_state.append(pv)
    return pvs_in_desired_state


def get_bound_pvs(syncer: SyncerContext) -> list[V1PersistentVolume]:
    """CSI PVs in Bound phase, for the volume health check."""
    bound_pvs = []
    for pv in syncer.pv_lister.list():
        if not is_csi_volume(pv):
            continue
        logger.debug(
            "getBoundPVs: pv phase",
            pv_name=pv.metadata.name,
            volume_handle=pv.spec.csi.volume_handle,
            phase=_phase(pv),
        )
        if _phase(pv) == PV_PHASE_BOUND:
            bound_pvs.append(pv)
    return bound_pvs


async def get_inline_migrated_volumes_info(
    syncer: SyncerContext, migration_enabled: bool
) -> DiscoveryResult[dict[str, str]]:
    """Map volume ID to legacy volume path for vSphere volumes declared inline in pods.

    Raises:
        MigrationServiceError: If migration is enabled but no migration service is set up
    """
    result: DiscoveryResult[dict[str, str]] = DiscoveryResult(items={})
    if not migration_enabled:
        return result
    if syncer.migration_service is None:
        raise MigrationServiceError("volume migration service is not initialized")

    for pod in syncer.pod_lister.list():
        for volume in (pod.spec.volumes if pod.spec else None) or []:
            source = volume.vsphere_volume
            if source is None:
                continue
            try:
                spec = VolumeSpec(
                    volume_path=source.volume_path,
                    storage_policy_name=source.storage_policy_name or "",
                )
                volume_handle = await syncer.migration_service.get_volume_id(spec)
            except Exception as e:
                logger.warning(
                    "FullSync: failed to get VolumeID from volume migration service",
                    pod_name=pod.metadata.name,
                    namespace=pod.metadata.namespace,
                    volume_path=source.volume_path,
                    error=str(e),
                )
                result.skip(f"{pod.metadata.namespace}/{pod.metadata.name}:{volume.name}", str(e))
                continue
            result.items[volume_handle] = source.volume_path
    return result


def is_valid_volume(
    syncer: SyncerContext, volume: V1Volume, pod: V1Pod
) -> tuple[bool, V1PersistentVolume | None, V1PersistentVolumeClaim | None]:
    """Whether a pod volume is backed by a syncable vSphere volume.

    Returns:
        (True, pv, pvc) when valid, otherwise (False, None, None)
    """
    claim = volume.persistent_volume_claim
    if claim is None:
        logger.debug("Pod volume is not backed by a PVC", pod_name=pod.metadata.name, volume=volume.name)
        return False, None, None

    try:
        pvc = syncer.pvc_lister.get(pod.metadata.namespace, claim.claim_name)
    except ObjectNotFoundError as e:
        logger.error("Error getting PVC for volume", volume=volume.name, error=str(e))
        return False, None, None

    volume_name = pvc.spec.volume_name if pvc.spec else None
    if not volume_name:
        logger.debug("PVC is not bound yet", pvc_name=pvc.metadata.name, volume=volume.name)
        return False, None, None
    try:
        pv = syncer.pv_lister.get(volume_name)
    except ObjectNotFoundError as e:
        logger.error(
            "Error getting PV for PVC", pvc_name=pvc.metadata.name, volume=volume.name, error=str(e)
        )
        return False, None, None

    migration_enabled = syncer.orchestrator.is_enabled(CSI_MIGRATION)
    if is_in_tree_volume(pv) and not migration_enabled:
        logger.warning(
            "Feature switch is disabled, cannot update vSphere volume metadata for the pod",
            feature_name=CSI_MIGRATION,
            pv_name=pv.metadata.name,
            pod_name=pod.metadata.name,
        )
        return False, None, None
    if not is_csi_volume(pv) and not is_in_tree_volume(pv):
        logger.debug("Pod does not have a valid vSphere volume, ignoring", pod_name=pod.metadata.name)
        return False, None, None
    return True, pv, pvc
