"""Pydantic models describing the remote CRM object API payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNIQUE_CONFLICT = "CONFLICTING_UNIQUE_VALUE"


def _stringify_properties(value: object) -> object:
    """Property maps arrive with nulls and numbers; keep non-null values as text."""

    if not isinstance(value, Mapping):
        return value
    mapping_value = cast(Mapping[str, object], value)
    return {
        str(key): item if isinstance(item, str) else str(item)
        for key, item in mapping_value.items()
        if item is not None
    }


class RemoteBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ObjectPayload(RemoteBaseModel):
    id: str
    properties: dict[str, str] = Field(default_factory=dict)
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    _normalize_properties = field_validator("properties", mode="before")(_stringify_properties)


class NextPage(RemoteBaseModel):
    after: str


class Paging(RemoteBaseModel):
    next: NextPage | None = None


class ObjectPage(RemoteBaseModel):
    results: list[ObjectPayload] = Field(default_factory=list)
    paging: Paging | None = None

    @property
    def next_after(self) -> str | None:
        if self.paging is None or self.paging.next is None:
            return None
        return self.paging.next.after


class CreatedObject(RemoteBaseModel):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value


class ErrorContext(RemoteBaseModel):
    ids: list[str] = Field(default_factory=list)
    property_name: list[str] = Field(default_factory=list, alias="propertyName")


class ErrorDetail(RemoteBaseModel):
    message: str = ""
    context: ErrorContext = Field(default_factory=ErrorContext)


class ErrorResponse(RemoteBaseModel):
    """Error body; batch responses carry one ``ErrorDetail`` per rejected group."""

    message: str = ""
    category: str | None = None
    sub_category: str | None = Field(default=None, alias="subCategory")
    context: ErrorContext = Field(default_factory=ErrorContext)
    errors: list[ErrorDetail] = Field(default_factory=list)

    @property
    def is_unique_conflict(self) -> bool:
        return UNIQUE_CONFLICT in {self.category, self.sub_category}

    @property
    def offending_property(self) -> str | None:
        names = [*self.context.property_name]
        for detail in self.errors:
            names.extend(detail.context.property_name)
        return names[0] if names else None


class BatchResponse(RemoteBaseModel):
    status: str | None = None
    results: list[ObjectPayload] = Field(default_factory=list)
    errors: list[ErrorDetail] = Field(default_factory=list)
