from __future__ import annotations

import logging

from kubernetes import client
from kubernetes.client.exceptions import ApiException


logger = logging.getLogger(__name__)


class IndexSchemaError(RuntimeError):
    pass


class IndexSchemaService:
    """Loads a full index-creation body from a ConfigMap in the request namespace."""

    def __init__(self, core_api: client.CoreV1Api, *, key: str = "mapping.json") -> None:
        self._core_api = core_api
        self._key = key

    def load(self, *, namespace: str, config_map_name: str) -> str:
        try:
            config_map = self._core_api.read_namespaced_config_map(name=config_map_name, namespace=namespace)
        except ApiException as exc:
            logger.error("Unable to get ConfigMap %s/%s: %s", namespace, config_map_name, exc.reason)
            raise IndexSchemaError(f"Failed to read ConfigMap {namespace}/{config_map_name}") from exc

        body = (config_map.data or {}).get(self._key)
        if not body or not body.strip():
            logger.error("ConfigMap %s/%s is missing key %s", namespace, config_map_name, self._key)
            raise IndexSchemaError(f"ConfigMap {namespace}/{config_map_name} is missing key: {self._key}")
        return body
