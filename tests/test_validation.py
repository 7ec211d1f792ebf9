"""Tests for volume classification predicates."""

import pytest
from kubernetes.client import V1ObjectMeta

from metadata_syncer.constants import (
    ANN_DYNAMICALLY_PROVISIONED,
    ANN_MIGRATED_TO,
    ANN_STORAGE_PROVISIONER,
    CSI_DRIVER_NAME,
    IN_TREE_PLUGIN_NAME,
    SC_NAME_ANNOTATION_KEY,
)
from metadata_syncer.core.exceptions import StorageClassNotSpecifiedError
from metadata_syncer.syncer.validation import (
    get_pvc_key,
    get_sc_name_from_pvc,
    has_migrated_to_annotation_update,
    is_csi_volume,
    is_in_tree_volume,
    is_multi_attach_allowed,
    is_valid_vsphere_volume,
    is_valid_vsphere_volume_claim,
)

from conftest import make_csi_pv, make_pvc, make_vsphere_pv


def meta(annotations: dict[str, str] | None) -> V1ObjectMeta:
    return V1ObjectMeta(name="obj", annotations=annotations)


class TestVolumeKind:
    """CSI versus in-tree classification."""

    def test_csi_volume(self):
        pv = make_csi_pv("pv-1", "vol-1")
        assert is_csi_volume(pv) is True
        assert is_in_tree_volume(pv) is False

    def test_csi_volume_of_another_driver(self):
        assert is_csi_volume(make_csi_pv("pv-1", "vol-1", driver="ebs.csi.aws.com")) is False

    def test_in_tree_volume(self):
        pv = make_vsphere_pv("pv-1", "[ds] disk.vmdk")
        assert is_in_tree_volume(pv) is True
        assert is_csi_volume(pv) is False


class TestValidVsphereVolumeClaim:
    """Migrated or CSI provisioned in-tree claims."""

    def test_migrated_claim(self):
        annotations = {ANN_MIGRATED_TO: CSI_DRIVER_NAME, ANN_STORAGE_PROVISIONER: IN_TREE_PLUGIN_NAME}
        assert is_valid_vsphere_volume_claim(meta(annotations)) is True

    def test_migrated_to_other_driver(self):
        annotations = {ANN_MIGRATED_TO: "other.csi.driver", ANN_STORAGE_PROVISIONER: IN_TREE_PLUGIN_NAME}
        assert is_valid_vsphere_volume_claim(meta(annotations)) is False

    def test_migrated_to_but_provisioner_not_in_tree(self):
        # Provisioner check is skipped once migrated-to is present
        annotations = {ANN_MIGRATED_TO: CSI_DRIVER_NAME, ANN_STORAGE_PROVISIONER: CSI_DRIVER_NAME}
        assert is_valid_vsphere_volume_claim(meta(annotations)) is False

    def test_provisioned_by_csi_driver(self):
        assert is_valid_vsphere_volume_claim(meta({ANN_STORAGE_PROVISIONER: CSI_DRIVER_NAME})) is True

    def test_provisioned_by_in_tree_plugin_only(self):
        assert is_valid_vsphere_volume_claim(meta({ANN_STORAGE_PROVISIONER: IN_TREE_PLUGIN_NAME})) is False

    def test_no_annotations(self):
        assert is_valid_vsphere_volume_claim(meta(None)) is False


class TestValidVsphereVolume:
    """Same rules as claims, keyed on the provisioned-by annotation."""

    def test_migrated_volume(self):
        annotations = {ANN_MIGRATED_TO: CSI_DRIVER_NAME, ANN_DYNAMICALLY_PROVISIONED: IN_TREE_PLUGIN_NAME}
        assert is_valid_vsphere_volume(meta(annotations)) is True

    def test_provisioned_by_csi_driver(self):
        assert is_valid_vsphere_volume(meta({ANN_DYNAMICALLY_PROVISIONED: CSI_DRIVER_NAME})) is True

    def test_claim_annotation_does_not_count_for_volume(self):
        assert is_valid_vsphere_volume(meta({ANN_STORAGE_PROVISIONER: CSI_DRIVER_NAME})) is False


class TestMigratedToAnnotationUpdate:
    """Detection of the migrated-to annotation being added."""

    def test_annotation_added(self):
        assert has_migrated_to_annotation_update({}, {ANN_MIGRATED_TO: CSI_DRIVER_NAME}, "pv-1") is True

    def test_annotation_added_to_none(self):
        assert has_migrated_to_annotation_update(None, {ANN_MIGRATED_TO: CSI_DRIVER_NAME}, "pv-1") is True

    def test_annotation_already_present(self):
        annotations = {ANN_MIGRATED_TO: CSI_DRIVER_NAME}
        assert has_migrated_to_annotation_update(annotations, dict(annotations), "pv-1") is False

    def test_annotation_removed(self):
        assert has_migrated_to_annotation_update({ANN_MIGRATED_TO: CSI_DRIVER_NAME}, {}, "pv-1") is False

    def test_annotation_absent_on_both(self):
        assert has_migrated_to_annotation_update({"a": "b"}, {"c": "d"}, "pv-1") is False


class TestStorageClassName:
    """Storage class resolution for claims."""

    def test_from_spec(self):
        assert get_sc_name_from_pvc(make_pvc("claim", storage_class_name="fast-disk")) == "fast-disk"

    def test_spec_wins_over_annotation(self):
        pvc = make_pvc(
            "claim", storage_class_name="fast-disk", annotations={SC_NAME_ANNOTATION_KEY: "slow-disk"}
        )
        assert get_sc_name_from_pvc(pvc) == "fast-disk"

    def test_from_annotation(self):
        pvc = make_pvc("claim", annotations={SC_NAME_ANNOTATION_KEY: "fast-disk"})
        assert get_sc_name_from_pvc(pvc) == "fast-disk"

    def test_not_specified(self):
        with pytest.raises(StorageClassNotSpecifiedError, match="storage class name not specified in PVC"):
            get_sc_name_from_pvc(make_pvc("claim"))

    def test_empty_annotation_is_not_specified(self):
        with pytest.raises(StorageClassNotSpecifiedError):
            get_sc_name_from_pvc(make_pvc("claim", annotations={SC_NAME_ANNOTATION_KEY: ""}))


class TestMultiAttach:
    """Access modes that allow attaching to several nodes."""

    @pytest.mark.parametrize(
        "modes,expected",
        [
            (["ReadWriteMany"], True),
            (["ReadOnlyMany"], True),
            (["ReadWriteOnce", "ReadOnlyMany"], True),
            (["ReadWriteOnce"], False),
            (["ReadWriteOncePod"], False),
            ([], False),
            (None, False),
        ],
    )
    def test_access_modes(self, modes, expected):
        assert is_multi_attach_allowed(make_csi_pv("pv-1", "vol-1", access_modes=modes)) is expected

    def test_missing_pv(self):
        assert is_multi_attach_allowed(None) is False


class TestPvcKey:
    """namespace/name keys for claims."""

    def test_key_from_object(self):
        assert get_pvc_key(make_pvc("claim", namespace="apps")) == "apps/claim"

    def test_key_string_passes_through(self):
        assert get_pvc_key("apps/claim") == "apps/claim"

    def test_object_without_metadata(self):
        with pytest.raises(ValueError):
            get_pvc_key(object())
