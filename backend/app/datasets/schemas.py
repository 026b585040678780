"""Pydantic schemas for datasets.

``DatasetConfig`` is a tagged union of three frozen variants. Wire names are
camelCase to match the admin console; Python attributes are snake_case.
"""
from __future__ import annotations

import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


COMPANY_INTELLIGENCE_ENDPOINT = "/api/companies"
COMPANY_INTELLIGENCE_SYSTEM_TYPE = "company-intelligence"


class DataSourceType(str, Enum):
    """How a dataset's data is provided."""
    API = "api"
    FOLDER = "folder"
    COMPANY = "company"

    @classmethod
    def parse(cls, value: Any) -> "DataSourceType":
        """Accept the enum, its value, or the "company-intelligence" alias."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() == COMPANY_INTELLIGENCE_SYSTEM_TYPE:
            return cls.COMPANY
        return cls(str(value).strip().lower())


class DatasetKind(str, Enum):
    """Store listing type."""
    LIVE = "live"
    DATASET = "dataset"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"


_CONFIG_MODEL_CONFIG = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")


class ApiConfig(BaseModel):
    """Data pulled from an HTTP endpoint."""
    model_config = _CONFIG_MODEL_CONFIG

    data_source_type: Literal["api"] = Field(
        default="api", alias="dataSourceType"
    )
    api_endpoint: str = Field(alias="apiEndpoint", min_length=1)
    api_method: HttpMethod = Field(default=HttpMethod.GET, alias="apiMethod")
    # Raw string as entered; see headers_malformed.
    api_headers: Optional[str] = Field(default=None, alias="apiHeaders")

    def parsed_headers(self) -> Optional[Dict[str, Any]]:
        """Headers as a dict, or None when absent or not a JSON object."""
        if not self.api_headers or not self.api_headers.strip():
            return None
        try:
            value = json.loads(self.api_headers)
        except ValueError:
            return None
        return value if isinstance(value, dict) else None

    @property
    def headers_malformed(self) -> bool:
        return bool(self.api_headers and self.api_headers.strip()) and self.parsed_headers() is None


class FolderConfig(BaseModel):
    """Data imported from files in a folder."""
    model_config = _CONFIG_MODEL_CONFIG

    data_source_type: Literal["folder"] = Field(
        default="folder", alias="dataSourceType"
    )
    folder_path: str = Field(alias="folderPath", min_length=1)
    file_pattern: Optional[str] = Field(default=None, alias="filePattern")


class CompanyIntelligenceConfig(BaseModel):
    """Built-in company intelligence API. Not editable."""
    model_config = _CONFIG_MODEL_CONFIG

    data_source_type: Literal["company"] = Field(
        default="company", alias="dataSourceType"
    )
    api_endpoint: Literal["/api/companies"] = Field(
        default=COMPANY_INTELLIGENCE_ENDPOINT, alias="apiEndpoint"
    )
    api_method: Literal["GET"] = Field(default="GET", alias="apiMethod")
    system_type: Literal["company-intelligence"] = Field(
        default=COMPANY_INTELLIGENCE_SYSTEM_TYPE, alias="systemType"
    )


DatasetConfig = Union[ApiConfig, FolderConfig, CompanyIntelligenceConfig]


# Wire names of the per-source fields a draft or patch may carry.
SOURCE_FIELDS = ("apiEndpoint", "apiMethod", "apiHeaders", "folderPath", "filePattern")


class _SourceFieldsMixin(BaseModel):
    """Source fields accepted at the top level or inside a nested ``config``."""
    model_config = ConfigDict(populate_by_name=True)

    api_endpoint: Optional[str] = Field(default=None, alias="apiEndpoint")
    api_method: Optional[str] = Field(default=None, alias="apiMethod")
    # JSON text, or a JSON object that is serialized on write.
    api_headers: Optional[Union[str, Dict[str, Any]]] = Field(default=None, alias="apiHeaders")
    folder_path: Optional[str] = Field(default=None, alias="folderPath")
    file_pattern: Optional[str] = Field(default=None, alias="filePattern")
    config: Optional[Dict[str, Any]] = None

    def source_fields(self) -> Dict[str, Any]:
        """Supplied source fields keyed by wire name; top-level values win."""
        fields: Dict[str, Any] = {}
        nested = self.config or {}
        for name in SOURCE_FIELDS:
            if name in nested and nested[name] is not None:
                fields[name] = nested[name]
        top_level = self.model_dump(by_alias=True, exclude_unset=True, include=_SOURCE_ATTRS)
        for name, value in top_level.items():
            if value is None:
                continue
            # Blank form fields do not override a value given in ``config``.
            if isinstance(value, str) and not value.strip() and name in fields:
                continue
            fields[name] = value
        return fields

    def nested_source_type(self) -> Optional[Any]:
        if self.config:
            return self.config.get("dataSourceType") or (
                COMPANY_INTELLIGENCE_SYSTEM_TYPE
                if self.config.get("systemType") == COMPANY_INTELLIGENCE_SYSTEM_TYPE
                else None
            )
        return None


_SOURCE_ATTRS = {"api_endpoint", "api_method", "api_headers", "folder_path", "file_pattern"}


class DatasetDraft(_SourceFieldsMixin):
    """Body of a create request."""
    name: str = ""
    description: Optional[str] = None
    category: str = ""
    type: DatasetKind = DatasetKind.LIVE
    price: float = Field(default=0.0, ge=0)
    featured: bool = False
    formats: List[str] = Field(default_factory=list)
    size: Optional[str] = None
    icon: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")
    is_public: bool = Field(default=False, alias="isPublic")
    data_source_type: Optional[DataSourceType] = Field(default=None, alias="dataSourceType")

    @field_validator("data_source_type", mode="before")
    @classmethod
    def _parse_source_type(cls, value: Any) -> Any:
        return None if value is None or value == "" else DataSourceType.parse(value)

    def resolved_source_type(self) -> DataSourceType:
        """Tag from the draft, else from the nested config, else "api"."""
        if self.data_source_type is not None:
            return self.data_source_type
        nested = self.nested_source_type()
        if nested is not None:
            return DataSourceType.parse(nested)
        return DataSourceType.API


class DatasetPatch(_SourceFieldsMixin):
    """Body of a partial update; only fields present in the request change."""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    type: Optional[DatasetKind] = None
    price: Optional[float] = Field(default=None, ge=0)
    featured: Optional[bool] = None
    formats: Optional[List[str]] = None
    size: Optional[str] = None
    icon: Optional[str] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    is_public: Optional[bool] = Field(default=None, alias="isPublic")
    data_source_type: Optional[DataSourceType] = Field(default=None, alias="dataSourceType")

    @field_validator("data_source_type", mode="before")
    @classmethod
    def _parse_source_type(cls, value: Any) -> Any:
        return None if value is None or value == "" else DataSourceType.parse(value)

    def requested_source_type(self) -> Optional[DataSourceType]:
        if self.data_source_type is not None:
            return self.data_source_type
        nested = self.nested_source_type()
        return DataSourceType.parse(nested) if nested is not None else None

    def touches_source(self) -> bool:
        return self.requested_source_type() is not None or bool(self.source_fields())


class ListItem(BaseModel):
    """Body of a format/feature append."""
    value: str


class DatasetOut(BaseModel):
    """A persisted dataset as returned by the registry."""
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: str
    type: DatasetKind
    price: float
    featured: bool
    formats: List[str]
    size: Optional[str] = None
    icon: Optional[str] = None
    features: List[str]
    is_active: bool = Field(alias="isActive")
    is_public: bool = Field(alias="isPublic")
    config: DatasetConfig
    created_by: Optional[uuid.UUID] = Field(default=None, alias="createdBy")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @property
    def data_source_type(self) -> DataSourceType:
        return DataSourceType(self.config.data_source_type)

    @property
    def is_discoverable(self) -> bool:
        return self.is_public and self.is_active

    def to_api(self) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True, mode="json")
        payload["config"] = self.config.model_dump(by_alias=True, mode="json", exclude_none=True)
        payload["dataSourceType"] = self.data_source_type.value
        payload["isDiscoverable"] = self.is_discoverable
        return payload
