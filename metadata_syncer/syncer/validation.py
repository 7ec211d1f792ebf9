"""Classification predicates shared by discovery and the reconciler.

All functions here are read-only with respect to cluster and backend state.
"""

from collections.abc import Mapping
from typing import Any

import structlog
from kubernetes.client import V1ObjectMeta, V1PersistentVolume, V1PersistentVolumeClaim

from ..constants import (
    ANN_DYNAMICALLY_PROVISIONED,
    ANN_MIGRATED_TO,
    ANN_STORAGE_PROVISIONER,
    CSI_DRIVER_NAME,
    IN_TREE_PLUGIN_NAME,
    MULTI_ATTACH_ACCESS_MODES,
    SC_NAME_ANNOTATION_KEY,
)
from ..core.exceptions import StorageClassNotSpecifiedError
from ..core.informer import object_key

logger = structlog.get_logger()


def is_csi_volume(pv: V1PersistentVolume) -> bool:
    """Whether pv is provisioned through this CSI driver."""
    csi = pv.spec.csi if pv.spec else None
    return csi is not None and csi.driver == CSI_DRIVER_NAME


def is_in_tree_volume(pv: V1PersistentVolume) -> bool:
    """Whether pv is an in-tree vSphere volume."""
    return pv.spec is not None and pv.spec.vsphere_volume is not None


def _is_valid_legacy_object(metadata: V1ObjectMeta, provisioner_key: str, kind: str) -> bool:
    annotations = metadata.annotations or {}
    if ANN_MIGRATED_TO in annotations:
        if (
            annotations[ANN_MIGRATED_TO] == CSI_DRIVER_NAME
            and annotations.get(provisioner_key) == IN_TREE_PLUGIN_NAME
        ):
            logger.debug(
                "Migrated-to annotation found",
                kind=kind,
                name=metadata.name,
                annotation=ANN_MIGRATED_TO,
                value=CSI_DRIVER_NAME,
            )
            return True
    elif annotations.get(provisioner_key) == CSI_DRIVER_NAME:
        logger.debug(
            "Provisioner annotation found",
            kind=kind,
            name=metadata.name,
            annotation=provisioner_key,
            value=CSI_DRIVER_NAME,
        )
        return True
    return False


def is_valid_vsphere_volume_claim(pvc_metadata: V1ObjectMeta) -> bool:
    """Whether an in-tree PVC is migrated to, or was provisioned by, the CSI driver."""
    return _is_valid_legacy_object(pvc_metadata, ANN_STORAGE_PROVISIONER, "PersistentVolumeClaim")


def is_valid_vsphere_volume(pv_metadata: V1ObjectMeta) -> bool:
    """Whether an in-tree PV is migrated to, or was provisioned by, the CSI driver."""
    return _is_valid_legacy_object(pv_metadata, ANN_DYNAMICALLY_PROVISIONED, "PersistentVolume")


def has_migrated_to_annotation_update(
    prev_annotations: Mapping[str, str] | None,
    new_annotations: Mapping[str, str] | None,
    object_name: str,
) -> bool:
    """True when the migrated-to annotation appears in new_annotations but not before."""
    if ANN_MIGRATED_TO in (new_annotations or {}) and ANN_MIGRATED_TO not in (prev_annotations or {}):
        logger.debug("Received migrated-to annotation update", object_name=object_name)
        return True
    logger.debug("Migrated-to annotation not added", object_name=object_name)
    return False


def get_sc_name_from_pvc(pvc: V1PersistentVolumeClaim) -> str:
    """Name of the storage class of pvc, falling back to the beta annotation.

    Raises:
        StorageClassNotSpecifiedError: If neither is set
    """
    sc_name = pvc.spec.storage_class_name if pvc.spec else None
    if sc_name:
        return sc_name
    annotations = (pvc.metadata.annotations if pvc.metadata else None) or {}
    sc_name = annotations.get(SC_NAME_ANNOTATION_KEY, "")
    if not sc_name:
        raise StorageClassNotSpecifiedError("storage class name not specified in PVC")
    return sc_name


def is_multi_attach_allowed(pv: V1PersistentVolume | None) -> bool:
    """Whether pv can be attached to multiple nodes at once."""
    if pv is None or pv.spec is None:
        return False
    return any(mode in MULTI_ATTACH_ACCESS_MODES for mode in pv.spec.access_modes or [])


def get_pvc_key(obj: Any) -> str:
    """namespace/name key for a PVC object; an existing key string passes through.

    Raises:
        ValueError: If obj carries no metadata
    """
    if isinstance(obj, str):
        return obj
    if getattr(obj, "metadata", None) is None or not obj.metadata.name:
        logger.error("Failed to get key from object", object_type=type(obj).__name__)
        raise ValueError(f"object has no metadata: {obj!r}")
    key = object_key(obj)
    logger.debug("PVC key computed", pvc_key=key)
    return key
