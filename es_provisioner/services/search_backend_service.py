from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Optional
from urllib.parse import quote

from es_provisioner.models.search_backend import CreateIndexBody, RoleBody, UserBody
from es_provisioner.services.search_connection import SearchConnection, SearchResponse


logger = logging.getLogger(__name__)


class SearchBackendError(RuntimeError):
    def __init__(self, message: str, *, status: Optional[int] = None, error_type: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.error_type = error_type


class ResourceAlreadyExistsError(SearchBackendError):
    pass


class ResourceNotFoundError(SearchBackendError):
    pass


class SearchBackendService:
    """Elasticsearch index, alias and security calls over a `SearchConnection`.

    Each call either succeeds or raises. "Already exists" on create and "not
    found" on delete are raised as dedicated subclasses so that callers decide
    whether they count as success.
    """

    _ALREADY_EXISTS_TYPES = frozenset({"resource_already_exists_exception"})

    def __init__(self, connection: SearchConnection) -> None:
        self._connection = connection

    @property
    def connection(self) -> SearchConnection:
        return self._connection

    @staticmethod
    def _segment(name: str) -> str:
        if not name or not name.strip():
            raise ValueError("resource name must be provided")
        return quote(name, safe="")

    def _raise_for_response(self, response: SearchResponse, *, action: str) -> None:
        if response.ok:
            return

        error_type = response.error_type
        message = f"Cannot {action}: HTTP {response.status} {response.details()}".strip()
        if error_type in self._ALREADY_EXISTS_TYPES:
            raise ResourceAlreadyExistsError(message, status=response.status, error_type=error_type)
        if response.status == HTTPStatus.NOT_FOUND:
            raise ResourceNotFoundError(message, status=response.status, error_type=error_type)
        raise SearchBackendError(message, status=response.status, error_type=error_type)

    def ping(self) -> None:
        response = self._connection.request(method="GET", path="/")
        self._raise_for_response(response, action="ping backend")

    def create_index(self, *, index_name: str, body: CreateIndexBody | dict[str, Any]) -> None:
        payload = body.to_body() if isinstance(body, CreateIndexBody) else body
        logger.debug("Creating index %s with body %s", index_name, payload)
        response = self._connection.request(method="PUT", path=f"/{self._segment(index_name)}", body=payload)
        self._raise_for_response(response, action=f"create index {index_name}")

    def get_index(self, *, index_name: str) -> dict[str, Any]:
        response = self._connection.request(method="GET", path=f"/{self._segment(index_name)}")
        self._raise_for_response(response, action=f"get index {index_name}")
        parsed = response.json()
        return parsed if isinstance(parsed, dict) else {}

    def delete_index(self, *, index_name: str) -> None:
        response = self._connection.request(method="DELETE", path=f"/{self._segment(index_name)}")
        self._raise_for_response(response, action=f"delete index {index_name}")

    def put_alias(self, *, index_name: str, alias_name: str) -> None:
        response = self._connection.request(
            method="PUT",
            path=f"/{self._segment(index_name)}/_alias/{self._segment(alias_name)}",
        )
        self._raise_for_response(response, action=f"create alias {alias_name}")

    def delete_alias(self, *, index_name: str, alias_name: str) -> None:
        response = self._connection.request(
            method="DELETE",
            path=f"/{self._segment(index_name)}/_alias/{self._segment(alias_name)}",
        )
        self._raise_for_response(response, action=f"delete alias {alias_name}")

    def put_role(self, *, role_name: str, body: RoleBody) -> None:
        response = self._connection.request(
            method="PUT",
            path=f"/_security/role/{self._segment(role_name)}",
            body=body.to_body(),
        )
        self._raise_for_response(response, action=f"create role {role_name}")

    def delete_role(self, *, role_name: str) -> None:
        response = self._connection.request(method="DELETE", path=f"/_security/role/{self._segment(role_name)}")
        self._raise_for_response(response, action=f"delete role {role_name}")

    def put_user(self, *, username: str, body: UserBody) -> None:
        response = self._connection.request(
            method="PUT",
            path=f"/_security/user/{self._segment(username)}",
            body=body.to_body(),
        )
        self._raise_for_response(response, action=f"create user {username}")

    def delete_user(self, *, username: str) -> None:
        response = self._connection.request(method="DELETE", path=f"/_security/user/{self._segment(username)}")
        self._raise_for_response(response, action=f"delete user {username}")
