from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from es_provisioner.services.search_backend_service import (
    ResourceNotFoundError,
    SearchBackendError,
    SearchBackendService,
)
from es_provisioner.services.search_connection import SearchConnectionError
from es_provisioner.services.setup.tenant_index_backend import (
    ProvisioningError,
    ResourceIdentifiers,
    raise_if_cancelled,
)


logger = logging.getLogger(__name__)


class DeprovisioningSaga:
    """Delete alias -> index -> user -> role. A missing resource is already deleted."""

    def __init__(self, backend: SearchBackendService, *, stop_event: Optional[threading.Event] = None) -> None:
        self._backend = backend
        self._stop_event = stop_event

    @staticmethod
    def _tolerate_missing(kind: str, name: str, delete: Callable[[], None]) -> None:
        logger.info("Delete %s: %s", kind, name)
        try:
            delete()
        except ResourceNotFoundError:
            logger.info("%s not found, already deleted: %s", kind.capitalize(), name)

    def run(self, identifiers: ResourceIdentifiers) -> None:
        steps: list[tuple[str, str, Callable[[], None]]] = [
            (
                "alias",
                identifiers.alias,
                lambda: self._backend.delete_alias(index_name=identifiers.index, alias_name=identifiers.alias),
            ),
            ("index", identifiers.index, lambda: self._backend.delete_index(index_name=identifiers.index)),
            ("user", identifiers.user, lambda: self._backend.delete_user(username=identifiers.user)),
            ("role", identifiers.role, lambda: self._backend.delete_role(role_name=identifiers.role)),
        ]

        for kind, name, delete in steps:
            raise_if_cancelled(self._stop_event, step=f"delete {kind}")
            try:
                self._tolerate_missing(kind, name, delete)
            except (SearchBackendError, SearchConnectionError) as exc:
                logger.error("Deprovisioning failed deleting %s %s: %s", kind, name, exc)
                raise ProvisioningError(f"Deprovisioning failed deleting {kind} {name}: {exc}") from exc

        logger.info(
            "Deprovisioned index=%s alias=%s role=%s user=%s",
            identifiers.index,
            identifiers.alias,
            identifiers.role,
            identifiers.user,
        )
