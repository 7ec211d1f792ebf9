"""Wiring for discovery and backend queries during a full sync pass."""

import asyncio

import structlog
from kubernetes.client import CoreV1Api, V1PersistentVolume

from ..constants import CSI_MIGRATION
from ..core.config_loader import SyncerConfig
from ..core.feature_states import FeatureStateOrchestrator
from ..core.informer import InformerManager
from ..core.settings import SyncerSettings
from ..models.discovery import FullSyncSnapshot, SkippedItem
from ..models.query import QueryResult
from ..models.volume import VolumeSpec
from ..services.backend import VolumeManager
from ..services.migration import (
    MappingStore,
    VolumeMigrationService,
    get_volume_migration_service,
)
from .discovery import get_bound_pvs, get_inline_migrated_volumes_info, get_pvs_in_bound_available_or_released
from .full_sync import full_sync_get_query_results
from .validation import is_csi_volume, is_in_tree_volume


class MetadataSyncer:
    """Holds the listers and collaborators every discovery call reads from."""

    def __init__(
        self,
        config: SyncerConfig,
        orchestrator: FeatureStateOrchestrator,
        informer_manager: InformerManager,
        volume_manager: VolumeManager,
        settings: SyncerSettings | None = None,
        migration_service: VolumeMigrationService | None = None,
    ):
        self.config = config
        self.settings = settings or SyncerSettings()
        self.orchestrator = orchestrator
        self.informer_manager = informer_manager
        self.volume_manager = volume_manager
        self.migration_service = migration_service

        self.pv_lister = informer_manager.pv_lister()
        self.pvc_lister = informer_manager.pvc_lister()
        self.pod_lister = informer_manager.pod_lister()

        # Callers must not run two full syncs at once against the same backend
        self._full_sync_lock = asyncio.Lock()
        self.logger = structlog.get_logger().bind(component="metadata_syncer")

    async def init_volume_migration_service(
        self, *, core_api: CoreV1Api | None = None, store: MappingStore | None = None
    ) -> VolumeMigrationService:
        """Attach the process-wide migration service.

        Raises:
            MigrationServiceError: If the service cannot be constructed
        """
        if self.migration_service is None:
            self.migration_service = await get_volume_migration_service(
                self.volume_manager,
                self.config.migration,
                core_api=core_api or self.informer_manager.core_api,
                store=store,
            )
        return self.migration_service

    async def _pv_volume_ids(
        self, pvs: list[V1PersistentVolume], skipped: list[SkippedItem]
    ) -> dict[str, str]:
        """Map volume ID to PV name, resolving in-tree PVs through the migration service."""
        volume_ids: dict[str, str] = {}
        for pv in pvs:
            name = pv.metadata.name
            if is_csi_volume(pv):
                volume_ids[pv.spec.csi.volume_handle] = name
                continue
            if not is_in_tree_volume(pv) or self.migration_service is None:
                skipped.append(SkippedItem(name=name, reason="no volume migration service"))
                continue
            source = pv.spec.vsphere_volume
            try:
                volume_id = await self.migration_service.get_volume_id(
                    VolumeSpec(
                        volume_path=source.volume_path,
                        storage_policy_name=source.storage_policy_name or "",
                    )
                )
            except Exception as e:
                self.logger.warning(
                    "FullSync: failed to get VolumeID for in-tree PV",
                    pv_name=name,
                    volume_path=source.volume_path,
                    error=str(e),
                )
                skipped.append(SkippedItem(name=name, reason=str(e)))
                continue
            volume_ids[volume_id] = name
        return volume_ids

    async def collect_full_sync_state(self) -> FullSyncSnapshot:
        """Gather cluster candidates and the backend catalog for one full sync pass.

        Raises:
            BackendQueryError: If any catalog page fails
            MigrationServiceError: If migration is enabled without a migration service
        """
        async with self._full_sync_lock:
            self.logger.info("FullSync: start")
            migration_enabled = self.orchestrator.is_enabled(CSI_MIGRATION)
            skipped: list[SkippedItem] = []

            pvs = get_pvs_in_bound_available_or_released(self)
            inline = await get_inline_migrated_volumes_info(self, migration_enabled)
            skipped.extend(inline.skipped)
            pv_volume_ids = await self._pv_volume_ids(pvs, skipped)

            query_results = await full_sync_get_query_results(
                [],
                self.config.cluster_id,
                self.volume_manager,
                limit=self.settings.full_sync_query_limit,
                timeout=self.settings.full_sync_timeout,
            )
            snapshot = FullSyncSnapshot(
                pvs=pvs,
                pv_volume_ids=pv_volume_ids,
                inline_volumes=inline.items,
                query_results=query_results,
                skipped=skipped,
            )
            self.logger.info(
                "FullSync: candidates collected",
                pvs=len(pvs),
                inline_volumes=len(inline.items),
                backend_volumes=len(snapshot.backend_volume_ids),
                missing_from_backend=len(snapshot.missing_from_backend),
                skipped=len(skipped),
            )
            return snapshot

    async def query_bound_volumes(self) -> list[QueryResult]:
        """Query the backend for the volumes of bound CSI PVs, for the volume health check."""
        volume_ids = [pv.spec.csi.volume_handle for pv in get_bound_pvs(self)]
        if not volume_ids:
            self.logger.debug("No bound CSI PVs to query")
            return []
        return await full_sync_get_query_results(
            volume_ids,
            self.config.cluster_id,
            self.volume_manager,
            limit=self.settings.full_sync_query_limit,
            timeout=self.settings.full_sync_timeout,
        )
