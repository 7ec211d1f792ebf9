"""Kubernetes informers: cached, watch-fed mirrors of cluster objects.

Each watched resource runs a relist-then-watch loop on a daemon thread. The
loop keeps an ObjectCache current and hands ConfigMap changes to registered
listeners as typed ConfigMapEvent payloads, so listeners never receive an
object of the wrong kind.
"""

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import structlog
from kubernetes import watch
from kubernetes.client import (
    CoreV1Api,
    V1ConfigMap,
    V1PersistentVolume,
    V1PersistentVolumeClaim,
    V1Pod,
)
from kubernetes.client.rest import ApiException

from ..models.enums import ConfigMapEventType
from ..models.events import ConfigMapEvent

logger = structlog.get_logger()

ConfigMapCallback = Callable[[ConfigMapEvent], None]
WatchSpec = tuple[str, Callable[..., Any], dict[str, Any]]

RESOURCE_PVS = "persistentvolumes"
RESOURCE_PVCS = "persistentvolumeclaims"
RESOURCE_PODS = "pods"
RESOURCE_CONFIGMAPS = "configmaps"


def object_key(obj: Any) -> str:
    """namespace/name for namespaced objects, name for cluster-scoped ones."""
    metadata = obj.metadata
    if metadata.namespace:
        return f"{metadata.namespace}/{metadata.name}"
    return metadata.name


def configmap_watch_key(namespace: str) -> str:
    return f"{RESOURCE_CONFIGMAPS}/{namespace}"


def _matches_labels(obj: Any, selector: dict[str, str] | None) -> bool:
    if not selector:
        return True
    labels = (obj.metadata.labels or {}) if obj.metadata else {}
    return all(labels.get(key) == value for key, value in selector.items())


class ObjectCache:
    """Thread-safe keyed snapshot of one resource type."""

    def __init__(self) -> None:
        self._items: dict[str, Any] = {}
        self._lock = threading.Lock()

    def upsert(self, obj: Any) -> Any | None:
        """Store obj and return the previous version, if any."""
        key = object_key(obj)
        with self._lock:
            old = self._items.get(key)
            self._items[key] = obj
        return old

    def delete(self, obj: Any) -> Any | None:
        with self._lock:
            return self._items.pop(object_key(obj), None)

    def replace(self, objs: Iterable[Any], namespace: str | None = None) -> list[Any]:
        """Swap in a full listing and return the objects that disappeared.

        With a namespace, only objects in that namespace are replaced.
        """
        fresh = {object_key(obj): obj for obj in objs}
        with self._lock:
            kept = {}
            if namespace is not None:
                kept = {
                    key: obj
                    for key, obj in self._items.items()
                    if obj.metadata.namespace != namespace
                }
            removed = [
                obj for key, obj in self._items.items() if key not in fresh and key not in kept
            ]
            self._items = {**kept, **fresh}
        return removed

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._items.get(key)

    def list(self, label_selector: dict[str, str] | None = None) -> list[Any]:
        with self._lock:
            items = list(self._items.values())
        return [obj for obj in items if _matches_labels(obj, label_selector)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ObjectNotFoundError(LookupError):
    """Requested object is not present in the informer cache."""


class PersistentVolumeLister:
    """Read-only view over cached PersistentVolumes."""

    def __init__(self, cache: ObjectCache):
        self._cache = cache

    def list(self, label_selector: dict[str, str] | None = None) -> list[V1PersistentVolume]:
        return self._cache.list(label_selector)

    def get(self, name: str) -> V1PersistentVolume:
        pv = self._cache.get(name)
        if pv is None:
            raise ObjectNotFoundError(f'persistentvolume "{name}" not found')
        return pv


class PersistentVolumeClaimLister:
    """Read-only view over cached PersistentVolumeClaims."""

    def __init__(self, cache: ObjectCache):
        self._cache = cache

    def list(self, label_selector: dict[str, str] | None = None) -> list[V1PersistentVolumeClaim]:
        return self._cache.list(label_selector)

    def get(self, namespace: str, name: str) -> V1PersistentVolumeClaim:
        pvc = self._cache.get(f"{namespace}/{name}")
        if pvc is None:
            raise ObjectNotFoundError(f'persistentvolumeclaim "{namespace}/{name}" not found')
        return pvc


class PodLister:
    """Read-only view over cached Pods."""

    def __init__(self, cache: ObjectCache):
        self._cache = cache

    def list(self, label_selector: dict[str, str] | None = None) -> list[V1Pod]:
        return self._cache.list(label_selector)


@dataclass(frozen=True)
class _ConfigMapListener:
    name: str
    namespace: str
    on_add: ConfigMapCallback
    on_update: ConfigMapCallback
    on_delete: ConfigMapCallback

    def matches(self, event: ConfigMapEvent) -> bool:
        return event.name == self.name and event.namespace == self.namespace


class InformerManager:
    """Owns the watch threads and object caches for the syncer."""

    def __init__(self, core_api: CoreV1Api, watch_timeout_seconds: int = 300):
        self.core_api = core_api
        self.watch_timeout_seconds = watch_timeout_seconds

        self._caches: dict[str, ObjectCache] = {
            RESOURCE_PVS: ObjectCache(),
            RESOURCE_PVCS: ObjectCache(),
            RESOURCE_PODS: ObjectCache(),
            RESOURCE_CONFIGMAPS: ObjectCache(),
        }
        self._configmap_listeners: list[_ConfigMapListener] = []
        self._listeners_lock = threading.Lock()
        self._synced: dict[str, threading.Event] = {}
        self._watches: dict[str, threading.Thread] = {}
        self._watches_lock = threading.Lock()
        self._running = False
        self._stop_event = threading.Event()

        self.logger = logger.bind(component="informer_manager")

    # Listers

    def pv_lister(self) -> PersistentVolumeLister:
        return PersistentVolumeLister(self._caches[RESOURCE_PVS])

    def pvc_lister(self) -> PersistentVolumeClaimLister:
        return PersistentVolumeClaimLister(self._caches[RESOURCE_PVCS])

    def pod_lister(self) -> PodLister:
        return PodLister(self._caches[RESOURCE_PODS])

    # Listener registration

    def add_configmap_listener(
        self,
        name: str,
        namespace: str,
        on_add: ConfigMapCallback,
        on_update: ConfigMapCallback,
        on_delete: ConfigMapCallback,
    ) -> None:
        """Register callbacks for one ConfigMap, matched by exact name and namespace.

        If the informers are already running and nothing watches the listener's
        namespace yet, a watch for that namespace is started right away.
        """
        listener = _ConfigMapListener(name, namespace, on_add, on_update, on_delete)
        with self._listeners_lock:
            self._configmap_listeners.append(listener)
        self.logger.info("Registered ConfigMap listener", name=name, namespace=namespace)

        with self._watches_lock:
            if self._running and self._start_watch(
                configmap_watch_key(namespace), self._configmap_watch_spec(namespace)
            ):
                self.logger.info("Started ConfigMap watch for new listener", namespace=namespace)

    # Event handling

    def handle_configmap_event(
        self, event_type: ConfigMapEventType, obj: Any, old_obj: Any = None
    ) -> None:
        """Validate a raw ConfigMap change and fan it out to matching listeners."""
        if not isinstance(obj, V1ConfigMap) or obj.metadata is None:
            self.logger.warning(
                "Unrecognized object in ConfigMap event",
                event_type=event_type.value,
                object_type=type(obj).__name__,
            )
            return
        if old_obj is not None and not isinstance(old_obj, V1ConfigMap):
            self.logger.warning(
                "Unrecognized old object in ConfigMap event",
                event_type=event_type.value,
                object_type=type(old_obj).__name__,
            )
            old_obj = None

        event = ConfigMapEvent(event_type=event_type, config_map=obj, old_config_map=old_obj)
        with self._listeners_lock:
            listeners = [listener for listener in self._configmap_listeners if listener.matches(event)]

        for listener in listeners:
            callback = {
                ConfigMapEventType.ADDED: listener.on_add,
                ConfigMapEventType.UPDATED: listener.on_update,
                ConfigMapEventType.DELETED: listener.on_delete,
            }[event_type]
            try:
                callback(event)
            except Exception as e:
                self.logger.error(
                    "ConfigMap listener failed",
                    name=event.name,
                    namespace=event.namespace,
                    event_type=event_type.value,
                    error=str(e),
                )

    def _apply_watch_event(self, resource: str, event_type: str, obj: Any) -> None:
        cache = self._caches[resource]
        if event_type in ("ADDED", "MODIFIED"):
            old = cache.upsert(obj)
            if resource == RESOURCE_CONFIGMAPS:
                kind = ConfigMapEventType.ADDED if old is None else ConfigMapEventType.UPDATED
                self.handle_configmap_event(kind, obj, old)
        elif event_type == "DELETED":
            cache.delete(obj)
            if resource == RESOURCE_CONFIGMAPS:
                self.handle_configmap_event(ConfigMapEventType.DELETED, obj)
        else:
            self.logger.debug("Ignoring watch event", resource=resource, event_type=event_type)

    def _apply_listing(self, resource: str, objs: list[Any], namespace: str | None = None) -> None:
        cache = self._caches[resource]
        if resource != RESOURCE_CONFIGMAPS:
            cache.replace(objs, namespace)
            return
        previous = {
            object_key(obj): obj
            for obj in cache.list()
            if namespace is None or obj.metadata.namespace == namespace
        }
        removed = cache.replace(objs, namespace)
        for obj in objs:
            old = previous.get(object_key(obj))
            if old is None:
                self.handle_configmap_event(ConfigMapEventType.ADDED, obj)
            elif old.metadata.resource_version != obj.metadata.resource_version:
                self.handle_configmap_event(ConfigMapEventType.UPDATED, obj, old)
        for obj in removed:
            self.handle_configmap_event(ConfigMapEventType.DELETED, obj)

    # Watch loops

    def _configmap_watch_spec(self, namespace: str) -> WatchSpec:
        return (
            RESOURCE_CONFIGMAPS,
            self.core_api.list_namespaced_config_map,
            {"namespace": namespace},
        )

    def _list_functions(self) -> dict[str, WatchSpec]:
        """Watch key to (resource, list function, list kwargs).

        ConfigMaps are watched once per listener namespace.
        """
        funcs: dict[str, WatchSpec] = {
            RESOURCE_PVS: (RESOURCE_PVS, self.core_api.list_persistent_volume, {}),
            RESOURCE_PVCS: (
                RESOURCE_PVCS,
                self.core_api.list_persistent_volume_claim_for_all_namespaces,
                {},
            ),
            RESOURCE_PODS: (RESOURCE_PODS, self.core_api.list_pod_for_all_namespaces, {}),
        }
        with self._listeners_lock:
            namespaces = sorted({listener.namespace for listener in self._configmap_listeners})
        for namespace in namespaces:
            funcs[configmap_watch_key(namespace)] = self._configmap_watch_spec(namespace)
        return funcs

    def _run_watch(
        self, key: str, resource: str, list_func: Callable[..., Any], kwargs: dict[str, Any]
    ) -> None:
        self.logger.info("Starting watch", watch=key)
        while not self._stop_event.is_set():
            try:
                listing = list_func(**kwargs)
                self._apply_listing(resource, listing.items, kwargs.get("namespace"))
                self._synced[key].set()

                w = watch.Watch()
                for event in w.stream(
                    list_func,
                    resource_version=listing.metadata.resource_version,
                    timeout_seconds=self.watch_timeout_seconds,
                    **kwargs,
                ):
                    if self._stop_event.is_set():
                        w.stop()
                        break
                    self._apply_watch_event(resource, event["type"], event["object"])
            except ApiException as e:
                if e.status == 410:  # Resource version too old
                    self.logger.info("Watch resource version expired, relisting", watch=key)
                    continue
                self.logger.error("Watch error", watch=key, status=e.status, error=str(e))
                self._stop_event.wait(5)
            except Exception as e:
                self.logger.error("Unexpected watch error", watch=key, error=str(e))
                self._stop_event.wait(5)
        self.logger.info("Watch stopped", watch=key)

    def _start_watch(self, key: str, spec: WatchSpec) -> bool:
        """Start a daemon thread for key unless one exists. Caller holds _watches_lock."""
        if key in self._watches:
            return False
        resource, list_func, kwargs = spec
        self._synced[key] = threading.Event()
        thread = threading.Thread(
            target=self._run_watch,
            args=(key, resource, list_func, kwargs),
            name=f"informer-{key}",
            daemon=True,
        )
        self._watches[key] = thread
        thread.start()
        return True

    def listen(self) -> None:
        """Start one daemon watch thread per resource type and ConfigMap namespace."""
        with self._watches_lock:
            if self._running:
                self.logger.warning("Informers are already running")
                return
            self._running = True
            self._stop_event.clear()
            for key, spec in self._list_functions().items():
                self._start_watch(key, spec)
            names = [thread.name for thread in self._watches.values()]
        self.logger.info("Informers started", watches=names)

    def wait_for_cache_sync(self, timeout: float | None = None) -> bool:
        """Block until every started informer has completed its first listing.

        The timeout bounds the whole wait, not each informer.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for event in list(self._synced.values()):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not event.wait(remaining):
                return False
        return True

    def stop(self, timeout: float = 5) -> None:
        self._stop_event.set()
        with self._watches_lock:
            threads = list(self._watches.values())
            self._watches.clear()
            self._running = False
        for thread in threads:
            thread.join(timeout=timeout)
        self.logger.info("Informers stopped")
