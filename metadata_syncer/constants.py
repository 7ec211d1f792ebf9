"""Centralized constants for the metadata syncer to eliminate duplicate strings."""

# Driver / Plugin Names
CSI_DRIVER_NAME = "csi.vsphere.vmware.com"
IN_TREE_PLUGIN_NAME = "kubernetes.io/vsphere-volume"

# Annotations
ANN_STORAGE_PROVISIONER = "volume.beta.kubernetes.io/storage-provisioner"
ANN_MIGRATED_TO = "pv.kubernetes.io/migrated-to"
ANN_DYNAMICALLY_PROVISIONED = "pv.kubernetes.io/provisioned-by"
# PVC annotation key to specify storage class from which PV should be provisioned
SC_NAME_ANNOTATION_KEY = "volume.beta.kubernetes.io/storage-class"

# Feature State Switches
CSI_MIGRATION = "csi-migration"
VOLUME_HEALTH = "volume-health"
ONLINE_VOLUME_EXTEND = "online-volume-extend"
FILE_VOLUME = "file-volume"
CSI_AUTH_CHECK = "csi-auth-check"

# Feature States ConfigMap
DEFAULT_FEATURE_STATES_CONFIGMAP_NAME = "internal-feature-states.csi.vsphere.vmware.com"
DEFAULT_CSI_NAMESPACE = "vmware-system-csi"

# Volume Migration ConfigMap
DEFAULT_MIGRATION_CONFIGMAP_NAME = "csi-volume-migration-mappings"

# PersistentVolume Phases
PV_PHASE_BOUND = "Bound"
PV_PHASE_AVAILABLE = "Available"
PV_PHASE_RELEASED = "Released"
PV_PHASE_PENDING = "Pending"
PV_PHASE_FAILED = "Failed"

FULL_SYNC_PHASES = frozenset({PV_PHASE_BOUND, PV_PHASE_AVAILABLE, PV_PHASE_RELEASED})

# Access Modes
ACCESS_MODE_RWO = "ReadWriteOnce"
ACCESS_MODE_ROX = "ReadOnlyMany"
ACCESS_MODE_RWX = "ReadWriteMany"
ACCESS_MODE_RWOP = "ReadWriteOncePod"

MULTI_ATTACH_ACCESS_MODES = frozenset({ACCESS_MODE_RWX, ACCESS_MODE_ROX})

# Backend Query
QUERY_VOLUME_LIMIT = 500

# Logging
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_INIT_MESSAGE = "Logging system initialized"

# Environment Variables
ENV_SYNCER_CONFIG = "SYNCER_CONFIG"
ENV_LOG_LEVEL = "LOG_LEVEL"
