from __future__ import annotations

import json
import logging
import secrets
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from es_provisioner.models.search_backend import (
    CreateIndexBody,
    IndexMappings,
    IndexPrivileges,
    IndexSettings,
    RoleBody,
    UserBody,
)
from es_provisioner.services.search_backend_service import (
    ResourceAlreadyExistsError,
    SearchBackendError,
    SearchBackendService,
)
from es_provisioner.services.search_connection import SearchConnectionError
from es_provisioner.services.setup.tenant_index_backend import (
    IndexRequestError,
    ProvisioningError,
    ProvisionParameters,
    ProvisionResult,
    raise_if_cancelled,
)


logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ProvisioningSaga:
    """Create index -> alias -> role -> user, then prove the new user can read the index.

    Every step is safe to re-run: an existing index or alias counts as success,
    and role/user writes overwrite. The first hard failure aborts the remaining
    steps; nothing already created is rolled back.
    """

    NAME_PREFIX = "es-provisioner-"
    DEFAULT_SHARDS = 4
    DEFAULT_REFRESH_INTERVAL = "30s"
    DEFAULT_ANALYZER = "standard"

    def __init__(
        self,
        backend: SearchBackendService,
        *,
        today: Callable[[], date] = utc_today,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self._backend = backend
        self._today = today
        self._stop_event = stop_event

    # -----------------
    # Naming
    # -----------------

    def resolve_name(self, params: ProvisionParameters) -> str:
        if params.index_name:
            return params.index_name
        if params.namespace:
            return f"{self.NAME_PREFIX}{params.application}-{params.namespace}"
        return f"{self.NAME_PREFIX}{uuid.uuid4().hex[:8]}"

    def concrete_index_name(self, name: str) -> str:
        return f"{name}-{self._today().isoformat()}"

    @staticmethod
    def role_name(params: ProvisionParameters) -> str:
        parts = [p for p in (params.application, params.namespace) if p]
        return "-".join(parts) + "-role"

    @staticmethod
    def user_name(role_name: str) -> str:
        return f"{role_name}-user"

    # -----------------
    # Request bodies
    # -----------------

    @staticmethod
    def _parse_properties(raw: Optional[str]) -> dict[str, Any]:
        if not raw or not raw.strip():
            return {}

        text = raw.strip()
        if not text.startswith("{"):
            # The CRD carries the inside of the "properties" object.
            text = "{" + text + "}"
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            raise IndexRequestError(f"Invalid mapping properties: {exc}") from exc
        if not isinstance(parsed, dict):
            raise IndexRequestError("Mapping properties must be a JSON object")
        return parsed

    @staticmethod
    def _schema_body(params: ProvisionParameters) -> dict[str, Any]:
        try:
            body = json.loads(params.schema or "")
        except ValueError as exc:
            raise IndexRequestError(f"Invalid index schema body: {exc}") from exc
        if not isinstance(body, dict):
            raise IndexRequestError("Index schema body must be a JSON object")

        overrides: dict[str, Any] = {}
        if params.number_of_shards > 0:
            overrides["number_of_shards"] = params.number_of_shards
        if params.number_of_replicas > 0:
            overrides["number_of_replicas"] = params.number_of_replicas
        if params.refresh_interval:
            overrides["refresh_interval"] = params.refresh_interval
        if not overrides:
            return body

        settings = body.setdefault("settings", {})
        if not isinstance(settings, dict):
            raise IndexRequestError("Index schema 'settings' must be a JSON object")
        nested = settings.get("index")
        if isinstance(nested, dict):
            nested.update(overrides)
        else:
            settings.update({f"index.{key}": value for key, value in overrides.items()})
        return body

    def build_index_body(self, params: ProvisionParameters) -> CreateIndexBody | dict[str, Any]:
        if params.schema:
            return self._schema_body(params)

        return CreateIndexBody(
            settings=IndexSettings.with_default_analyzer(
                number_of_shards=params.number_of_shards or self.DEFAULT_SHARDS,
                number_of_replicas=params.number_of_replicas,
                refresh_interval=params.refresh_interval or self.DEFAULT_REFRESH_INTERVAL,
                analyzer=params.analyzer or self.DEFAULT_ANALYZER,
            ),
            mappings=IndexMappings(
                source={"enabled": params.source_enabled},
                properties=self._parse_properties(params.properties),
            ),
        )

    # -----------------
    # Steps
    # -----------------

    def _create_index(self, *, index_name: str, body: CreateIndexBody | dict[str, Any]) -> None:
        logger.info("Creating index: %s", index_name)
        try:
            self._backend.create_index(index_name=index_name, body=body)
        except ResourceAlreadyExistsError:
            logger.info("Index already exists, continuing: %s", index_name)

    def _create_alias(self, *, index_name: str, alias_name: str) -> None:
        logger.info("Creating alias: %s -> %s", alias_name, index_name)
        try:
            self._backend.put_alias(index_name=index_name, alias_name=alias_name)
        except ResourceAlreadyExistsError:
            logger.info("Alias already exists, continuing: %s", alias_name)

    def _create_role(self, *, role_name: str, index_name: str, alias_name: str) -> None:
        logger.info("Creating role: %s", role_name)
        body = RoleBody(indices=[IndexPrivileges(names=[index_name, alias_name])])
        self._backend.put_role(role_name=role_name, body=body)

    def _create_user(self, *, username: str, role_name: str) -> str:
        logger.info("Creating user: %s", username)
        password = secrets.token_urlsafe(24)
        self._backend.put_user(
            username=username,
            body=UserBody(password=password, roles=[role_name], full_name=username),
        )
        return password

    def _verify(self, *, username: str, password: str, index_name: str) -> None:
        logger.info("Testing credentials of %s against index %s", username, index_name)
        user_connection = self._backend.connection.for_user(username=username, password=password)
        SearchBackendService(user_connection).get_index(index_name=index_name)

    def run(self, params: ProvisionParameters) -> ProvisionResult:
        body = self.build_index_body(params)
        alias_name = self.resolve_name(params)
        index_name = self.concrete_index_name(alias_name)
        role_name = self.role_name(params)
        username = self.user_name(role_name)

        step = "create index"
        try:
            raise_if_cancelled(self._stop_event, step=step)
            self._create_index(index_name=index_name, body=body)

            step = "create alias"
            raise_if_cancelled(self._stop_event, step=step)
            self._create_alias(index_name=index_name, alias_name=alias_name)

            step = "create role"
            raise_if_cancelled(self._stop_event, step=step)
            self._create_role(role_name=role_name, index_name=index_name, alias_name=alias_name)

            step = "create user"
            raise_if_cancelled(self._stop_event, step=step)
            password = self._create_user(username=username, role_name=role_name)

            step = "verify credentials"
            raise_if_cancelled(self._stop_event, step=step)
            self._verify(username=username, password=password, index_name=index_name)
        except (SearchBackendError, SearchConnectionError) as exc:
            logger.error("Provisioning failed at step %r for index %s: %s", step, index_name, exc)
            raise ProvisioningError(f"Provisioning failed at step {step!r}: {exc}") from exc

        logger.info("Provisioned index=%s alias=%s role=%s user=%s", index_name, alias_name, role_name, username)
        return ProvisionResult(
            username=username,
            password=password,
            role=role_name,
            index=index_name,
            alias=alias_name,
        )
