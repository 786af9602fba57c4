"""Unit tests for the alias -> index -> user -> role teardown saga."""

from __future__ import annotations

import threading

import pytest

from es_provisioner.services.search_backend_service import SearchBackendService
from es_provisioner.services.setup import (
    ProvisioningError,
    ProvisionParameters,
    ResourceIdentifiers,
    SagaCancelledError,
    SearchTenantIndexBackend,
)
from es_provisioner.services.setup.deprovisioning_saga import DeprovisioningSaga
from fake_search_cluster import FakeSearchCluster


IDENTIFIERS = ResourceIdentifiers(
    index="es-provisioner-billing-team-a-2026-10-19",
    alias="es-provisioner-billing-team-a",
    role="billing-team-a-role",
    user="billing-team-a-role-user",
)


@pytest.fixture
def provisioned(tenant_backend: SearchTenantIndexBackend) -> ResourceIdentifiers:
    result = tenant_backend.provision(ProvisionParameters(application="billing", namespace="team-a"))
    return ResourceIdentifiers(index=result.index, alias=result.alias, role=result.role, user=result.username)


@pytest.fixture
def saga(backend_service: SearchBackendService, stop_event: threading.Event) -> DeprovisioningSaga:
    return DeprovisioningSaga(backend_service, stop_event=stop_event)


class TestDeprovisioningSaga:
    def test_deletes_in_order(
        self, saga: DeprovisioningSaga, cluster: FakeSearchCluster, provisioned: ResourceIdentifiers
    ) -> None:
        assert provisioned == IDENTIFIERS
        cluster.calls.clear()

        saga.run(provisioned)

        assert cluster.mutations() == [
            ("DELETE", f"/{IDENTIFIERS.index}/_alias/{IDENTIFIERS.alias}"),
            ("DELETE", f"/{IDENTIFIERS.index}"),
            ("DELETE", f"/_security/user/{IDENTIFIERS.user}"),
            ("DELETE", f"/_security/role/{IDENTIFIERS.role}"),
        ]
        assert cluster.indices == {}
        assert cluster.aliases == {}
        assert cluster.users == {}
        assert cluster.roles == {}

    def test_nothing_to_delete_is_success(self, saga: DeprovisioningSaga, cluster: FakeSearchCluster) -> None:
        saga.run(IDENTIFIERS)

        assert len(cluster.mutations()) == 4

    def test_teardown_is_reentrant(
        self, saga: DeprovisioningSaga, cluster: FakeSearchCluster, provisioned: ResourceIdentifiers
    ) -> None:
        # A previous attempt already removed the alias and the index.
        del cluster.aliases[provisioned.alias]
        del cluster.indices[provisioned.index]

        saga.run(provisioned)

        assert cluster.users == {}
        assert cluster.roles == {}

    def test_other_errors_abort_remaining_steps(
        self, saga: DeprovisioningSaga, cluster: FakeSearchCluster, provisioned: ResourceIdentifiers
    ) -> None:
        cluster.fail("DELETE", f"/{provisioned.index}", 403)

        with pytest.raises(ProvisioningError, match="deleting index"):
            saga.run(provisioned)

        assert provisioned.index in cluster.indices
        assert provisioned.user in cluster.users
        assert provisioned.role in cluster.roles

    def test_cancellation(
        self, saga: DeprovisioningSaga, cluster: FakeSearchCluster, stop_event: threading.Event
    ) -> None:
        stop_event.set()

        with pytest.raises(SagaCancelledError, match="delete alias"):
            saga.run(IDENTIFIERS)

        assert cluster.calls == []
