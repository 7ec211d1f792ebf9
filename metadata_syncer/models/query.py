"""Backend catalog query models."""

from pydantic import Field, model_validator

from .enums import BackendVolumeType
from .volume import SyncerModel


class QueryCursor(SyncerModel):
    """Pagination cursor assigned by the backend."""

    offset: int = Field(default=0, ge=0)
    limit: int = Field(gt=0)
    total_records: int = Field(default=0, ge=0)

    @property
    def exhausted(self) -> bool:
        return self.offset == self.total_records


class QueryFilter(SyncerModel):
    """Filter for a backend volume query; empty volume_ids means the whole catalog."""

    volume_ids: list[str] = Field(default_factory=list)
    container_cluster_ids: list[str] = Field(default_factory=list)
    cursor: QueryCursor

    @property
    def queries_entire_catalog(self) -> bool:
        return not self.volume_ids


class BackendVolume(SyncerModel):
    """One volume entry from the backend catalog."""

    volume_id: str
    name: str = ""
    volume_type: BackendVolumeType = BackendVolumeType.BLOCK
    datastore_url: str | None = None
    cluster_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class QueryResult(SyncerModel):
    """One page of backend query results."""

    volumes: list[BackendVolume] = Field(default_factory=list)
    cursor: QueryCursor

    @model_validator(mode="after")
    def check_cursor(self) -> "QueryResult":
        if self.cursor.offset > self.cursor.total_records:
            raise ValueError(
                f"cursor offset {self.cursor.offset} exceeds total records {self.cursor.total_records}"
            )
        return self
