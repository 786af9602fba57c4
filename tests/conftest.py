"""Pytest configuration and shared fixtures.

Backend calls go through the real connection, backend service and sagas, with
an in-memory Elasticsearch (`FakeSearchCluster`) as transport. Kubernetes-side
collaborators of the reconciler are replaced by small in-memory fakes.
"""

from __future__ import annotations

import threading
from typing import Optional

import pytest

from es_provisioner.models.tenant_index import TenantIndex, TenantIndexStatusValue
from es_provisioner.services.credential_secret_service import CredentialSecretError
from es_provisioner.services.index_schema_service import IndexSchemaError
from es_provisioner.services.index_store import IndexStoreError
from es_provisioner.services.reconciliation_service import IndexReconciler
from es_provisioner.services.search_backend_service import SearchBackendService
from es_provisioner.services.search_connection import SearchConnection, SearchConnectionOptions
from es_provisioner.services.setup import (
    ProvisionParameters,
    ProvisionResult,
    ResourceIdentifiers,
    SearchTenantIndexBackend,
)
from factories import FINALIZER, SECRET_NAME, TODAY
from fake_search_cluster import ADMIN_PASSWORD, ADMIN_USERNAME, FakeSearchCluster


# =============================================================================
# Backend fixtures
# =============================================================================


@pytest.fixture
def cluster() -> FakeSearchCluster:
    return FakeSearchCluster()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the code under test, instead of really sleeping."""
    return []


@pytest.fixture
def connection(cluster: FakeSearchCluster, sleeps: list[float]) -> SearchConnection:
    options = SearchConnectionOptions(
        addresses=("http://es-0:9200",),
        retries=3,
        username=ADMIN_USERNAME,
        password=ADMIN_PASSWORD,
    )
    return SearchConnection(options, transport=cluster, sleep=sleeps.append)


@pytest.fixture
def backend_service(connection: SearchConnection) -> SearchBackendService:
    return SearchBackendService(connection)


@pytest.fixture
def stop_event() -> threading.Event:
    return threading.Event()


@pytest.fixture
def tenant_backend(backend_service: SearchBackendService, stop_event: threading.Event) -> SearchTenantIndexBackend:
    return SearchTenantIndexBackend(backend_service, today=lambda: TODAY, stop_event=stop_event)


# =============================================================================
# Reconciler fakes
# =============================================================================


class FakeIndexStore:
    def __init__(self, journal: list[str]) -> None:
        self.objects: dict[tuple[str, str], TenantIndex] = {}
        self.status_history: list[TenantIndexStatusValue] = []
        self.fail_add_finalizer = False
        self._journal = journal

    def put(self, index: TenantIndex) -> None:
        self.objects[(index.namespace, index.name)] = index.model_copy(deep=True)

    def current(self, namespace: str, name: str) -> TenantIndex:
        return self.objects[(namespace, name)]

    def get(self, *, namespace: str, name: str) -> Optional[TenantIndex]:
        obj = self.objects.get((namespace, name))
        return obj.model_copy(deep=True) if obj is not None else None

    def add_finalizer(self, index: TenantIndex) -> None:
        if self.fail_add_finalizer:
            raise IndexStoreError("conflict updating finalizers")
        index.finalizers = [*index.finalizers, FINALIZER]
        self.put(index)
        self._journal.append("add_finalizer")

    def remove_finalizer(self, index: TenantIndex) -> None:
        index.finalizers = [f for f in index.finalizers if f != FINALIZER]
        self.put(index)
        self._journal.append("remove_finalizer")

    def update_status(self, index: TenantIndex, status: TenantIndexStatusValue) -> None:
        index.status.index_status = status
        self.put(index)
        self.status_history.append(status)
        self._journal.append(f"status:{status.value}")


class FakeCredentialSecrets:
    secret_name = SECRET_NAME

    def __init__(self, journal: list[str]) -> None:
        self.secrets: dict[str, dict[str, str]] = {}
        self.fail_materialize = False
        self._journal = journal

    def materialize(self, *, namespace: str, result: ProvisionResult) -> None:
        if self.fail_materialize:
            raise CredentialSecretError("secrets is forbidden")
        self.secrets[namespace] = {
            "username": result.username,
            "password": result.password,
            "index": result.alias,
            "_index": result.index,
            "role": result.role,
        }
        self._journal.append("materialize")

    def read_identifiers(self, *, namespace: str) -> Optional[ResourceIdentifiers]:
        data = self.secrets.get(namespace)
        if data is None:
            return None
        return ResourceIdentifiers(index=data["_index"], alias=data["index"], role=data["role"], user=data["username"])

    def delete(self, *, namespace: str) -> None:
        self.secrets.pop(namespace, None)
        self._journal.append("delete_secret")


class FakeSchemas:
    def __init__(self) -> None:
        self.config_maps: dict[tuple[str, str], str] = {}

    def load(self, *, namespace: str, config_map_name: str) -> str:
        try:
            return self.config_maps[(namespace, config_map_name)]
        except KeyError:
            raise IndexSchemaError(f"ConfigMap {namespace}/{config_map_name} is missing key: mapping.json") from None


class RecordingBackend:
    def __init__(self, inner: SearchTenantIndexBackend, journal: list[str]) -> None:
        self.inner = inner
        self.provisioned: list[ProvisionParameters] = []
        self.deprovisioned: list[ResourceIdentifiers] = []
        self._journal = journal

    def provision(self, params: ProvisionParameters) -> ProvisionResult:
        self._journal.append("provision")
        self.provisioned.append(params)
        return self.inner.provision(params)

    def deprovision(self, identifiers: ResourceIdentifiers) -> None:
        self._journal.append("deprovision")
        self.deprovisioned.append(identifiers)
        self.inner.deprovision(identifiers)


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def store(journal: list[str]) -> FakeIndexStore:
    return FakeIndexStore(journal)


@pytest.fixture
def credential_secrets(journal: list[str]) -> FakeCredentialSecrets:
    return FakeCredentialSecrets(journal)


@pytest.fixture
def schemas() -> FakeSchemas:
    return FakeSchemas()


@pytest.fixture
def recording_backend(tenant_backend: SearchTenantIndexBackend, journal: list[str]) -> RecordingBackend:
    return RecordingBackend(tenant_backend, journal)


@pytest.fixture
def reconciler(
    store: FakeIndexStore,
    recording_backend: RecordingBackend,
    credential_secrets: FakeCredentialSecrets,
    schemas: FakeSchemas,
) -> IndexReconciler:
    return IndexReconciler(
        store=store,
        backend=recording_backend,
        secrets=credential_secrets,
        schemas=schemas,
        finalizer_name=FINALIZER,
    )

