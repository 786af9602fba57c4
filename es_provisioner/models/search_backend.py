from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


TENANT_INDEX_PRIVILEGES: tuple[str, ...] = (
    "create",
    "create_doc",
    "index",
    "read",
    "write",
    "view_index_metadata",
)


class IndexSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    number_of_shards: int = Field(alias="index.number_of_shards")
    number_of_replicas: int = Field(alias="index.number_of_replicas")
    refresh_interval: str = Field(alias="index.refresh_interval")
    analysis: dict[str, Any]

    @staticmethod
    def with_default_analyzer(
        *, number_of_shards: int, number_of_replicas: int, refresh_interval: str, analyzer: str
    ) -> "IndexSettings":
        return IndexSettings(
            number_of_shards=number_of_shards,
            number_of_replicas=number_of_replicas,
            refresh_interval=refresh_interval,
            analysis={"analyzer": {"default": {"type": analyzer}}},
        )


class IndexMappings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: dict[str, bool] = Field(alias="_source")
    dynamic: str = "strict"
    properties: dict[str, Any] = Field(default_factory=dict)


class CreateIndexBody(BaseModel):
    settings: IndexSettings
    mappings: IndexMappings

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class IndexPrivileges(BaseModel):
    names: list[str]
    privileges: list[str] = Field(default_factory=lambda: list(TENANT_INDEX_PRIVILEGES))


class RoleBody(BaseModel):
    indices: list[IndexPrivileges]

    def to_body(self) -> dict[str, Any]:
        return self.model_dump()


class UserBody(BaseModel):
    password: str
    roles: list[str]
    full_name: str

    def to_body(self) -> dict[str, Any]:
        return self.model_dump()
