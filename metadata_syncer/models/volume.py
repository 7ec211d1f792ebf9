"""Volume identity models."""

import hashlib
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SyncerModel(BaseModel):
    """Base model with common syncer settings."""

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with exclude_none by default."""
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


class VolumeSpec(SyncerModel):
    """Legacy in-tree volume locator: datastore path plus optional policy."""

    volume_path: str = Field(min_length=1)
    storage_policy_name: str = ""

    model_config = {"frozen": True}

    @field_validator("volume_path")
    @classmethod
    def strip_volume_path(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("volume_path must not be blank")
        return v

    @property
    def mapping_key(self) -> str:
        """Stable store key derived from the volume path."""
        return mapping_key_for_path(self.volume_path)


class VolumeMigrationMapping(SyncerModel):
    """Persisted legacy volume path to canonical volume ID record."""

    volume_id: str = Field(min_length=1)
    volume_path: str = Field(min_length=1)
    storage_policy_name: str = ""

    def to_spec(self) -> VolumeSpec:
        return VolumeSpec(volume_path=self.volume_path, storage_policy_name=self.storage_policy_name)


def mapping_key_for_path(volume_path: str) -> str:
    # ConfigMap keys only allow [-._a-zA-Z0-9]
    return "vol-" + hashlib.sha256(volume_path.strip().encode("utf-8")).hexdigest()[:40]
