from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Protocol


class SagaCancelledError(RuntimeError):
    pass


class ProvisioningError(RuntimeError):
    """A hard failure of the Provisioning or Deprovisioning saga."""


class IndexRequestError(ProvisioningError):
    """The request parameters (schema body, properties fragment) are malformed."""


@dataclass(frozen=True)
class ProvisionParameters:
    application: str
    namespace: Optional[str] = None
    index_name: Optional[str] = None
    number_of_shards: int = 0
    number_of_replicas: int = 0
    refresh_interval: Optional[str] = None
    analyzer: Optional[str] = None
    source_enabled: bool = False
    properties: Optional[str] = None
    schema: Optional[str] = None


@dataclass(frozen=True)
class ProvisionResult:
    username: str
    password: str
    role: str
    index: str
    alias: str


@dataclass(frozen=True)
class ResourceIdentifiers:
    index: str
    alias: str
    role: str
    user: str


class TenantIndexBackend(Protocol):
    """What the reconciler needs from a search backend, and nothing more."""

    def provision(self, params: ProvisionParameters) -> ProvisionResult: ...

    def deprovision(self, identifiers: ResourceIdentifiers) -> None: ...


def raise_if_cancelled(stop_event: Optional[threading.Event], *, step: str) -> None:
    if stop_event is not None and stop_event.is_set():
        raise SagaCancelledError(f"Cancelled before step: {step}")
