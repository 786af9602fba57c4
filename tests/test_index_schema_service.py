"""Unit tests for loading index schema bodies from ConfigMaps."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from es_provisioner.services.index_schema_service import IndexSchemaError, IndexSchemaService


@pytest.fixture
def core_api() -> MagicMock:
    return MagicMock(spec=client.CoreV1Api)


class TestIndexSchemaService:
    def test_returns_body_under_key(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_config_map.return_value = client.V1ConfigMap(data={"mapping.json": '{"a": 1}'})

        body = IndexSchemaService(core_api).load(namespace="team-a", config_map_name="schema")

        assert body == '{"a": 1}'
        core_api.read_namespaced_config_map.assert_called_once_with(name="schema", namespace="team-a")

    def test_custom_key(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_config_map.return_value = client.V1ConfigMap(data={"body": "{}"})

        assert IndexSchemaService(core_api, key="body").load(namespace="team-a", config_map_name="schema") == "{}"

    @pytest.mark.parametrize("data", [None, {}, {"mapping.json": "  "}, {"other.json": "{}"}])
    def test_missing_or_blank_key_raises(self, core_api: MagicMock, data) -> None:
        core_api.read_namespaced_config_map.return_value = client.V1ConfigMap(data=data)

        with pytest.raises(IndexSchemaError, match="missing key"):
            IndexSchemaService(core_api).load(namespace="team-a", config_map_name="schema")

    def test_read_failure_raises(self, core_api: MagicMock) -> None:
        core_api.read_namespaced_config_map.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(IndexSchemaError, match="Failed to read"):
            IndexSchemaService(core_api).load(namespace="team-a", config_map_name="schema")
