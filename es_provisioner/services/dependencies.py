from __future__ import annotations

import logging
import threading

from fastapi import FastAPI, Request
from kubernetes import client, config

from es_provisioner.services.config import OperatorConfig, SearchBackendConfig
from es_provisioner.services.credential_secret_service import CredentialSecretService
from es_provisioner.services.index_schema_service import IndexSchemaService
from es_provisioner.services.index_store import IndexStore
from es_provisioner.services.reconciliation_service import IndexReconciler
from es_provisioner.services.search_backend_service import SearchBackendService
from es_provisioner.services.search_connection import SearchConnectionOptions, connect_with_retry
from es_provisioner.services.setup import SearchTenantIndexBackend


logger = logging.getLogger(__name__)


def load_kubernetes_config() -> None:
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_search_backend_service_for_config(backend_config: SearchBackendConfig) -> SearchBackendService:
    """Connect as the admin user and ping once, so an unreachable backend fails at startup."""

    connection = connect_with_retry(SearchConnectionOptions.from_config(backend_config))
    service = SearchBackendService(connection)
    service.ping()
    logger.info("Backend reachable at %s", ", ".join(backend_config.addresses))
    return service


def build_index_reconciler(
    *,
    backend_service: SearchBackendService,
    operator_config: OperatorConfig,
    stop_event: threading.Event,
    api_client: client.ApiClient | None = None,
) -> IndexReconciler:
    core_api = client.CoreV1Api(api_client)
    return IndexReconciler(
        store=IndexStore(client.CustomObjectsApi(api_client), config=operator_config),
        backend=SearchTenantIndexBackend(backend_service, stop_event=stop_event),
        secrets=CredentialSecretService(core_api, secret_name=operator_config.secret_name),
        schemas=IndexSchemaService(core_api, key=operator_config.config_map_key),
        finalizer_name=operator_config.finalizer_name,
    )


def get_search_backend_service_from_app(app: FastAPI) -> SearchBackendService:
    service = getattr(app.state, "search_backend", None)
    if service is None:
        raise RuntimeError("Search backend not initialized (app.state.search_backend)")
    if not isinstance(service, SearchBackendService):
        raise RuntimeError("Unexpected search_backend type")
    return service


def get_search_backend_service(request: Request) -> SearchBackendService:
    return get_search_backend_service_from_app(request.app)


def operator_running(request: Request) -> bool:
    thread = getattr(request.app.state, "operator_thread", None)
    return thread is not None and thread.is_alive()
