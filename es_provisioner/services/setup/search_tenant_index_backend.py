from __future__ import annotations

import threading
from datetime import date
from typing import Callable, Optional

from es_provisioner.services.search_backend_service import SearchBackendService
from es_provisioner.services.setup.deprovisioning_saga import DeprovisioningSaga
from es_provisioner.services.setup.provisioning_saga import ProvisioningSaga, utc_today
from es_provisioner.services.setup.tenant_index_backend import (
    ProvisionParameters,
    ProvisionResult,
    ResourceIdentifiers,
)


class SearchTenantIndexBackend:
    """`TenantIndexBackend` backed by an Elasticsearch cluster."""

    def __init__(
        self,
        backend: SearchBackendService,
        *,
        today: Callable[[], date] = utc_today,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self._provisioning = ProvisioningSaga(backend, today=today, stop_event=stop_event)
        self._deprovisioning = DeprovisioningSaga(backend, stop_event=stop_event)

    def provision(self, params: ProvisionParameters) -> ProvisionResult:
        return self._provisioning.run(params)

    def deprovision(self, identifiers: ResourceIdentifiers) -> None:
        self._deprovisioning.run(identifiers)
