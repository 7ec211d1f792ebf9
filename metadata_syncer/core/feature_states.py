"""Feature state switches fed from a watched ConfigMap."""

import asyncio
import threading
from collections.abc import Mapping
from types import MappingProxyType

import structlog
from kubernetes.client import CoreV1Api

from .config_loader import FeatureStatesConfigInfo
from .exceptions import FeatureStateError
from .informer import InformerManager
from .kubernetes_client import new_core_api
from .once import OnceCell
from ..models.events import ConfigMapEvent

logger = structlog.get_logger()

# Boolean spellings written into the feature states ConfigMap
_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_feature_state(value: str) -> bool:
    """Parse a feature state value.

    Raises:
        ValueError: If value is not a recognised boolean literal
    """
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value {value!r}")


class FeatureStateStore:
    """Feature name to raw state mapping, swapped wholesale on every write.

    Readers take the current snapshot by reference and never wait on writers.
    """

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._snapshot: Mapping[str, str] = MappingProxyType(dict(initial or {}))
        self._write_lock = threading.Lock()

    def snapshot(self) -> Mapping[str, str]:
        return self._snapshot

    def replace(self, data: Mapping[str, str] | None) -> Mapping[str, str]:
        fresh = MappingProxyType(dict(data or {}))
        with self._write_lock:
            self._snapshot = fresh
        return fresh

    def disable_all(self) -> Mapping[str, str]:
        """Flip every known feature to false, keeping the keys."""
        with self._write_lock:
            self._snapshot = MappingProxyType({name: "false" for name in self._snapshot})
            return self._snapshot


class FeatureStateOrchestrator:
    """Answers feature state queries for the whole process.

    Obtain the shared instance through get_feature_state_orchestrator().
    """

    def __init__(self, config_info: FeatureStatesConfigInfo, store: FeatureStateStore | None = None):
        self._config_info = config_info
        self._store = store or FeatureStateStore()

    @property
    def config_info(self) -> FeatureStatesConfigInfo:
        return self._config_info

    @classmethod
    async def create(
        cls,
        config_info: FeatureStatesConfigInfo,
        core_api: CoreV1Api,
        informer_manager: InformerManager,
        fetch_timeout: float = 30,
        start_informers: bool = True,
    ) -> "FeatureStateOrchestrator":
        """Fetch the ConfigMap once, then follow it through the informer."""
        log = logger.bind(configmap=config_info.name, namespace=config_info.namespace)
        log.info("Initializing feature state orchestrator")
        orchestrator = cls(config_info)

        try:
            config_map = await asyncio.wait_for(
                asyncio.to_thread(
                    core_api.read_namespaced_config_map, config_info.name, config_info.namespace
                ),
                timeout=fetch_timeout,
            )
        except Exception as e:
            log.error(
                "Failed to fetch feature states ConfigMap, all features disabled",
                error=str(e) or type(e).__name__,
            )
        else:
            orchestrator._update_feature_states(config_map.data)

        orchestrator.register(informer_manager)
        if start_informers:
            informer_manager.listen()
        log.info("Feature state orchestrator initialized")
        return orchestrator

    def register(self, informer_manager: InformerManager) -> None:
        informer_manager.add_configmap_listener(
            self._config_info.name,
            self._config_info.namespace,
            on_add=self.on_configmap_added,
            on_update=self.on_configmap_updated,
            on_delete=self.on_configmap_deleted,
        )

    def _is_watched(self, event: ConfigMapEvent) -> bool:
        return (
            event.name == self._config_info.name
            and event.namespace == self._config_info.namespace
        )

    def on_configmap_added(self, event: ConfigMapEvent) -> None:
        if self._is_watched(event):
            self._update_feature_states(event.config_map.data)

    def on_configmap_updated(self, event: ConfigMapEvent) -> None:
        if self._is_watched(event):
            self._update_feature_states(event.config_map.data)

    def on_configmap_deleted(self, event: ConfigMapEvent) -> None:
        if not self._is_watched(event):
            return
        states = self._store.disable_all()
        logger.info(
            "Feature states ConfigMap deleted, setting feature states to false",
            configmap=event.name,
            feature_states=dict(states),
        )

    def _update_feature_states(self, data: Mapping[str, str] | None) -> None:
        states = self._store.replace(data)
        logger.info("New feature states values stored successfully", feature_states=dict(states))

    def is_enabled(self, feature_name: str) -> bool:
        """Whether feature_name is switched on. Unknown or malformed values read as off."""
        flag = self._store.snapshot().get(feature_name)
        if flag is None:
            logger.debug("Could not find the feature state, treating as disabled", feature_name=feature_name)
            return False
        try:
            return parse_feature_state(flag)
        except ValueError:
            logger.error(
                "Error converting feature state value to boolean, treating as disabled",
                feature_name=feature_name,
                value=flag,
            )
            return False

    def feature_states(self) -> Mapping[str, str]:
        return self._store.snapshot()


_orchestrator_cell: OnceCell[FeatureStateOrchestrator] = OnceCell()


async def get_feature_state_orchestrator(
    config_info: FeatureStatesConfigInfo,
    *,
    core_api: CoreV1Api | None = None,
    informer_manager: InformerManager | None = None,
    fetch_timeout: float = 30,
    start_informers: bool = True,
) -> FeatureStateOrchestrator:
    """Return the process-wide orchestrator, creating it on first call.

    Later and concurrent callers get the same instance, or the same
    FeatureStateError if initialization failed. Arguments after the first
    call are ignored.
    """

    async def build() -> FeatureStateOrchestrator:
        api = core_api
        informer = informer_manager
        try:
            if api is None:
                api = informer.core_api if informer is not None else new_core_api()
            if informer is None:
                informer = InformerManager(api)
        except Exception as e:
            logger.error("Creating Kubernetes client failed", error=str(e))
            raise FeatureStateError(f"creating Kubernetes client failed: {e}") from e
        return await FeatureStateOrchestrator.create(
            config_info,
            api,
            informer,
            fetch_timeout=fetch_timeout,
            start_informers=start_informers,
        )

    return await _orchestrator_cell.get_or_init(build)
