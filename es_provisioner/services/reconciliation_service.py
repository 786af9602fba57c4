from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

from pydantic import ValidationError

from es_provisioner.models.tenant_index import TenantIndex, TenantIndexSpec, TenantIndexStatusValue
from es_provisioner.services.credential_secret_service import CredentialSecretService
from es_provisioner.services.index_schema_service import IndexSchemaService
from es_provisioner.services.setup import (
    IndexRequestError,
    ProvisionParameters,
    SagaCancelledError,
    TenantIndexBackend,
)


logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    NOT_FOUND = "not_found"
    NO_OP = "no_op"
    PROVISIONED = "provisioned"
    DEPROVISIONED = "deprovisioned"


class IndexObjectStore(Protocol):
    def get(self, *, namespace: str, name: str) -> Optional[TenantIndex]: ...

    def add_finalizer(self, index: TenantIndex) -> None: ...

    def remove_finalizer(self, index: TenantIndex) -> None: ...

    def update_status(self, index: TenantIndex, status: TenantIndexStatusValue) -> None: ...


class IndexReconciler:
    """Drives one `Index` object towards its desired state per lifecycle signal.

    States: unseen (no finalizer) -> Creating -> Created -> Ready, or Error on any
    failure; deletion intent runs teardown from any state. Ready and Error are
    terminal for a given spec: later signals are no-ops.

    Failures propagate to the caller after the status is set. Retrying is left to
    redelivery of the next signal for the same object.
    """

    _RESUMABLE = frozenset({None, TenantIndexStatusValue.CREATING, TenantIndexStatusValue.CREATED})

    def __init__(
        self,
        *,
        store: IndexObjectStore,
        backend: TenantIndexBackend,
        secrets: CredentialSecretService,
        schemas: IndexSchemaService,
        finalizer_name: str,
    ) -> None:
        self._store = store
        self._backend = backend
        self._secrets = secrets
        self._schemas = schemas
        self._finalizer_name = finalizer_name

    def reconcile(self, *, namespace: str, name: str) -> ReconcileOutcome:
        index = self._store.get(namespace=namespace, name=name)
        if index is None:
            logger.info("Index %s/%s not found; nothing to reconcile", namespace, name)
            return ReconcileOutcome.NOT_FOUND

        if index.being_deleted:
            return self._finalize(index)

        if not index.has_finalizer(self._finalizer_name):
            try:
                self._store.add_finalizer(index)
            except Exception:
                logger.exception("Error setting finalizer on Index %s/%s", namespace, name)
                self._store.update_status(index, TenantIndexStatusValue.ERROR)
                raise

        if index.status.index_status not in self._RESUMABLE:
            logger.debug("Index %s/%s already %s", namespace, name, index.status.index_status)
            return ReconcileOutcome.NO_OP

        return self._provision(index)

    @staticmethod
    def _spec(index: TenantIndex) -> TenantIndexSpec:
        try:
            return index.parse_spec()
        except ValidationError as exc:
            raise IndexRequestError(f"Invalid spec of Index {index.namespace}/{index.name}: {exc}") from exc

    def _parameters(self, index: TenantIndex) -> ProvisionParameters:
        spec = self._spec(index)
        schema = None
        if spec.config_map:
            schema = self._schemas.load(namespace=index.namespace, config_map_name=spec.config_map)

        return ProvisionParameters(
            application=spec.application,
            namespace=index.namespace,
            index_name=spec.name,
            number_of_shards=spec.number_of_shards,
            number_of_replicas=spec.number_of_replicas,
            refresh_interval=spec.refresh_interval,
            analyzer=spec.analyzers,
            source_enabled=spec.source_enabled,
            properties=spec.properties,
            schema=schema,
        )

    def _provision(self, index: TenantIndex) -> ReconcileOutcome:
        # A resumed run never moves the status backwards.
        if index.status.index_status not in (TenantIndexStatusValue.CREATING, TenantIndexStatusValue.CREATED):
            self._store.update_status(index, TenantIndexStatusValue.CREATING)

        try:
            logger.info("Provisioning tenant index for %s/%s", index.namespace, index.name)
            result = self._backend.provision(self._parameters(index))
            self._store.update_status(index, TenantIndexStatusValue.CREATED)

            logger.info("Tenant provisioned; creating credential secret for %s/%s", index.namespace, index.name)
            self._secrets.materialize(namespace=index.namespace, result=result)
        except SagaCancelledError:
            # Left in Creating/Created so the next signal after restart resumes.
            logger.warning("Provisioning of %s/%s cancelled", index.namespace, index.name)
            raise
        except Exception:
            logger.exception("Unable to provision Index %s/%s", index.namespace, index.name)
            self._store.update_status(index, TenantIndexStatusValue.ERROR)
            raise

        self._store.update_status(index, TenantIndexStatusValue.READY)
        logger.info("Provisioning of %s/%s completed", index.namespace, index.name)
        return ReconcileOutcome.PROVISIONED

    def _finalize(self, index: TenantIndex) -> ReconcileOutcome:
        if not index.has_finalizer(self._finalizer_name):
            return ReconcileOutcome.NO_OP

        identifiers = self._secrets.read_identifiers(namespace=index.namespace)
        if identifiers is None:
            logger.warning(
                "No credential secret for Index %s/%s; no recorded resources to remove",
                index.namespace,
                index.name,
            )
        else:
            logger.info("Deleting index %s (alias %s)", identifiers.index, identifiers.alias)
            self._backend.deprovision(identifiers)
            logger.info("Index removed, deleting secret %s", self._secrets.secret_name)
            self._secrets.delete(namespace=index.namespace)

        self._store.remove_finalizer(index)
        logger.info("Clean up of %s/%s completed", index.namespace, index.name)
        return ReconcileOutcome.DEPROVISIONED
