from __future__ import annotations

import base64
import logging
from http import HTTPStatus
from typing import Any, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from es_provisioner.services.setup import ProvisionResult, ResourceIdentifiers


logger = logging.getLogger(__name__)


class CredentialSecretError(RuntimeError):
    pass


class CredentialSecretService:
    """Publishes provisioning results as a Secret, and reads them back for teardown.

    The Secret is the only durable record of the generated names, so exactly one
    exists per namespace under a fixed name.
    """

    OWNER_ANNOTATION = {"owner": "es-provisioner"}

    def __init__(self, core_api: client.CoreV1Api, *, secret_name: str) -> None:
        self._core_api = core_api
        self._secret_name = secret_name

    @property
    def secret_name(self) -> str:
        return self._secret_name

    def materialize(self, *, namespace: str, result: ProvisionResult) -> None:
        """Replace any existing credential Secret with one holding `result`."""

        self.delete(namespace=namespace)

        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=self._secret_name,
                namespace=namespace,
                annotations=dict(self.OWNER_ANNOTATION),
            ),
            type="Opaque",
            string_data={
                "username": result.username,
                "password": result.password,
                "index": result.alias,
                "_index": result.index,
                "role": result.role,
            },
        )
        try:
            self._core_api.create_namespaced_secret(namespace=namespace, body=secret)
        except ApiException as exc:
            logger.exception("Creating secret %s/%s failed", namespace, self._secret_name)
            raise CredentialSecretError(f"Failed to create secret {namespace}/{self._secret_name}") from exc

        logger.info("Secret %s/%s created", namespace, self._secret_name)

    @staticmethod
    def _decoded(data: dict[str, Any], key: str) -> str:
        raw = data.get(key)
        if not raw:
            raise CredentialSecretError(f"Credential secret is missing key: {key}")
        return base64.b64decode(raw).decode("utf-8")

    def read_identifiers(self, *, namespace: str) -> Optional[ResourceIdentifiers]:
        """Return the recorded resource names, or None if no Secret exists."""

        try:
            secret = self._core_api.read_namespaced_secret(name=self._secret_name, namespace=namespace)
        except ApiException as exc:
            if exc.status == HTTPStatus.NOT_FOUND:
                return None
            raise CredentialSecretError(f"Failed to read secret {namespace}/{self._secret_name}") from exc

        data = secret.data or {}
        return ResourceIdentifiers(
            index=self._decoded(data, "_index"),
            alias=self._decoded(data, "index"),
            role=self._decoded(data, "role"),
            user=self._decoded(data, "username"),
        )

    def delete(self, *, namespace: str) -> None:
        try:
            self._core_api.delete_namespaced_secret(name=self._secret_name, namespace=namespace)
        except ApiException as exc:
            if exc.status == HTTPStatus.NOT_FOUND:
                return
            raise CredentialSecretError(f"Failed to delete secret {namespace}/{self._secret_name}") from exc
        logger.info("Secret %s/%s deleted", namespace, self._secret_name)
