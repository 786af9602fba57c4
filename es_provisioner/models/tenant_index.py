from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TenantIndexStatusValue(str, Enum):
    """Observed provisioning status of an `Index` object (unset is None)."""

    CREATING = "Creating"
    CREATED = "Created"
    READY = "Ready"
    ERROR = "Error"


class TenantIndexSpec(BaseModel):
    """Desired state, as written by the requester in `spec`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    application: str = Field(min_length=1)
    config_map: Optional[str] = Field(default=None, alias="configMap")
    number_of_shards: int = Field(default=0, alias="numberOfShards", ge=0)
    number_of_replicas: int = Field(default=0, alias="numberOfReplicas", ge=0)
    refresh_interval: Optional[str] = Field(default=None, alias="refreshInterval")
    analyzers: Optional[str] = None
    source_enabled: bool = Field(default=False, alias="sourceEnabled")
    properties: Optional[str] = None


class TenantIndexStatus(BaseModel):
    """A value the operator does not know (set by someone else) is kept as a plain string."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    index_status: Optional[Union[TenantIndexStatusValue, str]] = Field(
        default=None, alias="indexStatus", union_mode="left_to_right"
    )


class TenantIndex(BaseModel):
    """The parts of an `Index` custom object the reconciler reads.

    Only metadata is interpreted on load; `spec` stays the raw mapping until
    `parse_spec()` is called, so that deletion never depends on its contents.
    """

    name: str
    namespace: str
    resource_version: Optional[str] = None
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: Optional[str] = None
    spec: dict[str, Any] = Field(default_factory=dict)
    status: TenantIndexStatus = Field(default_factory=TenantIndexStatus)

    @property
    def being_deleted(self) -> bool:
        return bool(self.deletion_timestamp)

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def parse_spec(self) -> TenantIndexSpec:
        """Raises pydantic's `ValidationError` for a spec the operator cannot act on."""

        return TenantIndexSpec.model_validate(self.spec)

    @staticmethod
    def _status(raw: Any) -> TenantIndexStatus:
        value = raw.get("indexStatus") if isinstance(raw, dict) else None
        if not isinstance(value, str) or not value:
            return TenantIndexStatus()
        return TenantIndexStatus(index_status=value)

    @staticmethod
    def from_object(obj: dict[str, Any]) -> "TenantIndex":
        meta = obj.get("metadata") or {}
        spec = obj.get("spec")
        return TenantIndex(
            name=meta.get("name", ""),
            namespace=meta.get("namespace", ""),
            resource_version=meta.get("resourceVersion"),
            finalizers=list(meta.get("finalizers") or []),
            deletion_timestamp=meta.get("deletionTimestamp"),
            spec=dict(spec) if isinstance(spec, dict) else {},
            status=TenantIndex._status(obj.get("status")),
        )
