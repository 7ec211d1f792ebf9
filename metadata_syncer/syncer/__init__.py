"""
Full sync discovery and backend query engine.
"""

from .discovery import (  # noqa: F401
    get_bound_pvs,
    get_inline_migrated_volumes_info,
    get_pvs_in_bound_available_or_released,
    is_valid_volume,
)
from .full_sync import full_sync_get_query_results  # noqa: F401
from .metadata_syncer import MetadataSyncer  # noqa: F401
from .validation import (  # noqa: F401
    get_pvc_key,
    get_sc_name_from_pvc,
    has_migrated_to_annotation_update,
    is_multi_attach_allowed,
    is_valid_vsphere_volume,
    is_valid_vsphere_volume_claim,
)

__all__ = [
    "MetadataSyncer",
    "full_sync_get_query_results",
    "get_bound_pvs",
    "get_inline_migrated_volumes_info",
    "get_pvc_key",
    "get_pvs_in_bound_available_or_released",
    "get_sc_name_from_pvc",
    "has_migrated_to_annotation_update",
    "is_multi_attach_allowed",
    "is_valid_volume",
    "is_valid_vsphere_volume",
    "is_valid_vsphere_volume_claim",
]
