"""Legacy in-tree volume to canonical volume ID resolution."""

import asyncio
import json
from typing import Protocol

import structlog
from kubernetes.client import CoreV1Api, V1ConfigMap, V1ObjectMeta
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from ..core.config_loader import MigrationConfig
from ..core.exceptions import MigrationServiceError, VolumeIDNotFoundError
from ..core.kubernetes_client import new_core_api
from ..core.once import OnceCell
from ..models.volume import VolumeMigrationMapping, VolumeSpec, mapping_key_for_path
from .backend import VolumeManager

logger = structlog.get_logger()


class MappingStore(Protocol):
    """Persistent key/value home for migration mappings."""

    async def initialize(self) -> None: ...

    async def get(self, key: str) -> VolumeMigrationMapping | None: ...

    async def put(self, key: str, mapping: VolumeMigrationMapping) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list(self) -> list[VolumeMigrationMapping]: ...


class InMemoryMappingStore:
    """Process-local mapping store, for tests and single-shot tools."""

    def __init__(self, mappings: list[VolumeMigrationMapping] | None = None):
        self._data: dict[str, VolumeMigrationMapping] = {
            mapping_key_for_path(m.volume_path): m for m in mappings or []
        }

    async def initialize(self) -> None:
        return None

    async def get(self, key: str) -> VolumeMigrationMapping | None:
        return self._data.get(key)

    async def put(self, key: str, mapping: VolumeMigrationMapping) -> None:
        self._data[key] = mapping

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self) -> list[VolumeMigrationMapping]:
        return list(self._data.values())


class ConfigMapMappingStore:
    """Stores each mapping as a JSON value in one namespaced ConfigMap."""

    def __init__(self, core_api: CoreV1Api, name: str, namespace: str):
        self.core_api = core_api
        self.name = name
        self.namespace = namespace
        self.logger = logger.bind(component="configmap_mapping_store", configmap=name, namespace=namespace)

    async def initialize(self) -> None:
        """Create the backing ConfigMap if it does not exist yet."""
        try:
            await asyncio.to_thread(self.core_api.read_namespaced_config_map, self.name, self.namespace)
            return
        except ApiException as e:
            if e.status != 404:
                raise
        body = V1ConfigMap(metadata=V1ObjectMeta(name=self.name, namespace=self.namespace), data={})
        try:
            await asyncio.to_thread(self.core_api.create_namespaced_config_map, self.namespace, body)
            self.logger.info("Created volume migration ConfigMap")
        except ApiException as e:
            if e.status != 409:  # Created concurrently
                raise

    async def _read_data(self) -> dict[str, str]:
        try:
            config_map = await asyncio.to_thread(
                self.core_api.read_namespaced_config_map, self.name, self.namespace
            )
        except ApiException as e:
            if e.status == 404:
                return {}
            raise
        return dict(config_map.data or {})

    def _decode(self, key: str, raw: str) -> VolumeMigrationMapping | None:
        try:
            return VolumeMigrationMapping.model_validate_json(raw)
        except ValidationError as e:
            self.logger.warning("Ignoring malformed migration mapping", key=key, error=str(e))
            return None

    async def get(self, key: str) -> VolumeMigrationMapping | None:
        raw = (await self._read_data()).get(key)
        if raw is None:
            return None
        return self._decode(key, raw)

    async def put(self, key: str, mapping: VolumeMigrationMapping) -> None:
        body = {"data": {key: json.dumps(mapping.model_dump())}}
        await asyncio.to_thread(
            self.core_api.patch_namespaced_config_map, self.name, self.namespace, body
        )

    async def delete(self, key: str) -> None:
        # A null value removes the key under merge patch semantics
        body = {"data": {key: None}}
        try:
            await asyncio.to_thread(
                self.core_api.patch_namespaced_config_map, self.name, self.namespace, body
            )
        except ApiException as e:
            if e.status != 404:
                raise

    async def list(self) -> list[VolumeMigrationMapping]:
        mappings = []
        for key, raw in (await self._read_data()).items():
            mapping = self._decode(key, raw)
            if mapping is not None:
                mappings.append(mapping)
        return mappings


class VolumeMigrationService:
    """Resolves legacy volume paths to canonical volume IDs and back.

    Lookups go through an in-process cache, then the mapping store, and finally
    register the legacy volume with the backend on demand.
    """

    def __init__(self, volume_manager: VolumeManager, store: MappingStore):
        self.volume_manager = volume_manager
        self.store = store
        self._by_key: dict[str, VolumeMigrationMapping] = {}
        self._by_id: dict[str, VolumeMigrationMapping] = {}
        self._key_locks: dict[str, asyncio.Lock] = {}
        self.logger = logger.bind(component="volume_migration_service")

    async def load(self) -> int:
        """Warm the cache from the store and return the number of mappings."""
        mappings = await self.store.list()
        for mapping in mappings:
            self._remember(mapping)
        self.logger.info("Loaded volume migration mappings", count=len(mappings))
        return len(mappings)

    def _remember(self, mapping: VolumeMigrationMapping) -> None:
        self._by_key[mapping_key_for_path(mapping.volume_path)] = mapping
        self._by_id[mapping.volume_id] = mapping

    def _forget(self, mapping: VolumeMigrationMapping) -> None:
        self._by_key.pop(mapping_key_for_path(mapping.volume_path), None)
        self._by_id.pop(mapping.volume_id, None)

    async def get_volume_id(self, spec: VolumeSpec) -> str:
        """Return the canonical volume ID for a legacy volume.

        Raises:
            VolumeIDNotFoundError: If no mapping exists and registration fails
            MigrationServiceError: If the mapping store cannot be reached
        """
        key = spec.mapping_key
        if mapping := self._by_key.get(key):
            return mapping.volume_id

        # Lookups of the same path wait for the first one to finish registering
        async with self._key_locks.setdefault(key, asyncio.Lock()):
            if mapping := self._by_key.get(key):
                return mapping.volume_id
            return await self._resolve_volume_id(spec, key)

    async def _resolve_volume_id(self, spec: VolumeSpec, key: str) -> str:
        try:
            mapping = await self.store.get(key)
        except Exception as e:
            raise MigrationServiceError(
                f"failed to read migration mapping for {spec.volume_path}: {e}"
            ) from e
        if mapping is not None:
            self._remember(mapping)
            return mapping.volume_id

        try:
            volume_id = await self.volume_manager.register_legacy_volume(spec)
        except Exception as e:
            raise VolumeIDNotFoundError(
                f"failed to register volume {spec.volume_path} with the backend: {e}"
            ) from e
        if not volume_id:
            raise VolumeIDNotFoundError(f"backend returned no volume ID for {spec.volume_path}")

        mapping = VolumeMigrationMapping(
            volume_id=volume_id,
            volume_path=spec.volume_path,
            storage_policy_name=spec.storage_policy_name,
        )
        try:
            await self.store.put(key, mapping)
        except Exception as e:
            raise MigrationServiceError(
                f"failed to persist migration mapping for {spec.volume_path}: {e}"
            ) from e
        self._remember(mapping)
        self.logger.info("Registered legacy volume", volume_path=spec.volume_path, volume_id=volume_id)
        return volume_id

    async def get_volume_path(self, volume_id: str) -> VolumeSpec:
        """Return the legacy locator a canonical volume ID was migrated from.

        Raises:
            VolumeIDNotFoundError: If the volume was never migrated
        """
        if mapping := self._by_id.get(volume_id):
            return mapping.to_spec()
        try:
            mappings = await self.store.list()
        except Exception as e:
            raise MigrationServiceError(f"failed to list migration mappings: {e}") from e
        for mapping in mappings:
            self._remember(mapping)
            if mapping.volume_id == volume_id:
                return mapping.to_spec()
        raise VolumeIDNotFoundError(f"no migrated volume path for volume ID {volume_id}")

    async def delete_volume_info(self, volume_id: str) -> None:
        """Drop the mapping for volume_id. A missing mapping is not an error."""
        try:
            spec = await self.get_volume_path(volume_id)
        except VolumeIDNotFoundError:
            self.logger.debug("No migration mapping to delete", volume_id=volume_id)
            return
        mapping = self._by_id[volume_id]
        await self.store.delete(spec.mapping_key)
        self._forget(mapping)
        self.logger.info("Deleted migration mapping", volume_id=volume_id, volume_path=spec.volume_path)


_service_cell: OnceCell[VolumeMigrationService] = OnceCell()


async def get_volume_migration_service(
    volume_manager: VolumeManager,
    config: MigrationConfig,
    *,
    core_api: CoreV1Api | None = None,
    store: MappingStore | None = None,
) -> VolumeMigrationService:
    """Return the process-wide migration service, creating it on first call.

    Raises:
        MigrationServiceError: If the service could not be constructed; every
            later caller receives the same error
    """

    async def build() -> VolumeMigrationService:
        try:
            mapping_store = store
            if mapping_store is None:
                mapping_store = ConfigMapMappingStore(
                    core_api or new_core_api(), config.configmap_name, config.configmap_namespace
                )
            await mapping_store.initialize()
            service = VolumeMigrationService(volume_manager, mapping_store)
            await service.load()
        except Exception as e:
            logger.error("Failed to get migration service", error=str(e))
            raise MigrationServiceError(f"failed to get migration service: {e}") from e
        return service

    return await _service_cell.get_or_init(build)
