"""Tests for metadata syncer Pydantic models."""

import pytest
from pydantic import ValidationError

from metadata_syncer.models.discovery import DiscoveryResult, FullSyncSnapshot
from metadata_syncer.models.enums import ConfigMapEventType
from metadata_syncer.models.events import ConfigMapEvent
from metadata_syncer.models.query import BackendVolume, QueryCursor, QueryFilter, QueryResult
from metadata_syncer.models.volume import VolumeMigrationMapping, VolumeSpec, mapping_key_for_path

from conftest import make_configmap


class TestVolumeSpec:
    """Test suite for VolumeSpec model."""

    def test_defaults(self):
        spec = VolumeSpec(volume_path="[ds1] kubevols/disk.vmdk")

        assert spec.storage_policy_name == ""

    def test_path_is_stripped(self):
        assert VolumeSpec(volume_path="  [ds1] disk.vmdk\n").volume_path == "[ds1] disk.vmdk"

    @pytest.mark.parametrize("path", ["", "   "])
    def test_blank_path_rejected(self, path):
        with pytest.raises(ValidationError):
            VolumeSpec(volume_path=path)

    def test_frozen(self):
        spec = VolumeSpec(volume_path="[ds1] disk.vmdk")

        with pytest.raises(ValidationError):
            spec.volume_path = "[ds2] other.vmdk"

    def test_mapping_key_is_configmap_safe(self):
        key = VolumeSpec(volume_path="[ds1] kubevols/My Disk.vmdk").mapping_key

        assert key.startswith("vol-")
        assert len(key) == 44
        assert all(c.isalnum() or c in "-._" for c in key)

    def test_mapping_key_ignores_policy(self):
        a = VolumeSpec(volume_path="[ds1] disk.vmdk", storage_policy_name="gold")
        b = VolumeSpec(volume_path="[ds1] disk.vmdk")

        assert a.mapping_key == b.mapping_key == mapping_key_for_path("[ds1] disk.vmdk")

    def test_different_paths_different_keys(self):
        assert mapping_key_for_path("[ds1] a.vmdk") != mapping_key_for_path("[ds1] b.vmdk")


class TestVolumeMigrationMapping:
    """Test suite for VolumeMigrationMapping model."""

    def test_to_spec(self):
        mapping = VolumeMigrationMapping(
            volume_id="vol-1", volume_path="[ds1] disk.vmdk", storage_policy_name="gold"
        )

        assert mapping.to_spec() == VolumeSpec(volume_path="[ds1] disk.vmdk", storage_policy_name="gold")

    def test_empty_volume_id_rejected(self):
        with pytest.raises(ValidationError):
            VolumeMigrationMapping(volume_id="", volume_path="[ds1] disk.vmdk")


class TestQueryModels:
    """Test suite for backend query models."""

    def test_cursor_exhausted(self):
        assert QueryCursor(offset=5, limit=2, total_records=5).exhausted is True
        assert QueryCursor(offset=2, limit=2, total_records=5).exhausted is False

    def test_cursor_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            QueryCursor(limit=0)

    def test_filter_entire_catalog(self):
        cursor = QueryCursor(limit=10)

        assert QueryFilter(cursor=cursor).queries_entire_catalog is True
        assert QueryFilter(volume_ids=["vol-1"], cursor=cursor).queries_entire_catalog is False

    def test_result_offset_beyond_total_rejected(self):
        with pytest.raises(ValidationError):
            QueryResult(cursor=QueryCursor(offset=6, limit=2, total_records=5))

    def test_backend_volume_dump_excludes_none(self):
        dumped = BackendVolume(volume_id="vol-1").model_dump()

        assert "datastore_url" not in dumped
        assert "cluster_id" not in dumped
        assert dumped["volume_id"] == "vol-1"


class TestConfigMapEvent:
    """Test suite for ConfigMapEvent payloads."""

    def test_accessors(self):
        event = ConfigMapEvent(
            event_type=ConfigMapEventType.ADDED,
            config_map=make_configmap({"a": "true"}, name="fss", namespace="ns"),
        )

        assert (event.name, event.namespace, event.data) == ("fss", "ns", {"a": "true"})
        assert event.old_config_map is None

    def test_missing_data_is_empty(self):
        event = ConfigMapEvent(event_type=ConfigMapEventType.DELETED, config_map=make_configmap(None))

        assert event.data == {}


class TestDiscoveryModels:
    """Test suite for discovery results."""

    def test_skip_records_reason(self):
        result: DiscoveryResult[list[str]] = DiscoveryResult(items=[])
        result.skip("ns/pod:vol", "lookup failed")

        assert result.skipped[0].name == "ns/pod:vol"
        assert result.skipped[0].reason == "lookup failed"

    def test_snapshot_differences(self):
        snapshot = FullSyncSnapshot(
            pvs=[],
            pv_volume_ids={"vol-1": "pv-1", "vol-2": "pv-2"},
            inline_volumes={"vol-3": "[ds] c.vmdk"},
            query_results=[
                QueryResult(
                    volumes=[BackendVolume(volume_id="vol-1"), BackendVolume(volume_id="vol-4")],
                    cursor=QueryCursor(offset=2, limit=2, total_records=2),
                )
            ],
        )

        assert snapshot.cluster_volume_ids == {"vol-1", "vol-2", "vol-3"}
        assert snapshot.missing_from_backend == {"vol-2", "vol-3"}
        assert snapshot.unknown_to_cluster == {"vol-4"}
