from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from es_provisioner.models.tenant_index import TenantIndex, TenantIndexStatusValue
from es_provisioner.services.config import OperatorConfig


logger = logging.getLogger(__name__)


class IndexStoreError(RuntimeError):
    pass


class IndexStore:
    """Reads `Index` objects and writes their finalizers and status."""

    def __init__(self, custom_api: client.CustomObjectsApi, *, config: OperatorConfig) -> None:
        self._custom_api = custom_api
        self._config = config

    def _coordinates(self, index: TenantIndex) -> dict[str, str]:
        return {
            "group": self._config.group,
            "version": self._config.version,
            "namespace": index.namespace,
            "plural": self._config.plural,
            "name": index.name,
        }

    def get(self, *, namespace: str, name: str) -> Optional[TenantIndex]:
        try:
            obj = self._custom_api.get_namespaced_custom_object(
                group=self._config.group,
                version=self._config.version,
                namespace=namespace,
                plural=self._config.plural,
                name=name,
            )
        except ApiException as exc:
            if exc.status == HTTPStatus.NOT_FOUND:
                return None
            raise IndexStoreError(f"Failed to get Index {namespace}/{name}") from exc
        return TenantIndex.from_object(obj)

    def _patch_finalizers(self, index: TenantIndex, finalizers: list[str]) -> None:
        # Merge patch; resourceVersion makes a concurrent update fail instead of being overwritten.
        body: dict[str, Any] = {"metadata": {"finalizers": finalizers}}
        if index.resource_version:
            body["metadata"]["resourceVersion"] = index.resource_version
        try:
            updated = self._custom_api.patch_namespaced_custom_object(body=body, **self._coordinates(index))
        except ApiException as exc:
            raise IndexStoreError(f"Failed to update finalizers of Index {index.namespace}/{index.name}") from exc

        index.finalizers = finalizers
        if isinstance(updated, dict):
            index.resource_version = (updated.get("metadata") or {}).get("resourceVersion", index.resource_version)

    def add_finalizer(self, index: TenantIndex) -> None:
        if index.has_finalizer(self._config.finalizer_name):
            return
        self._patch_finalizers(index, [*index.finalizers, self._config.finalizer_name])
        logger.info("Finalizer added to Index %s/%s", index.namespace, index.name)

    def remove_finalizer(self, index: TenantIndex) -> None:
        if not index.has_finalizer(self._config.finalizer_name):
            return
        self._patch_finalizers(index, [f for f in index.finalizers if f != self._config.finalizer_name])
        logger.info("Finalizer removed from Index %s/%s", index.namespace, index.name)

    def update_status(self, index: TenantIndex, status: TenantIndexStatusValue) -> None:
        """Best effort: a failed status write is logged, never raised."""

        index.status.index_status = status
        try:
            self._custom_api.patch_namespaced_custom_object_status(
                body={"status": {"indexStatus": status.value}},
                **self._coordinates(index),
            )
        except ApiException as exc:
            logger.error("Error updating status of Index %s/%s to %s: %s", index.namespace, index.name, status.value, exc)
