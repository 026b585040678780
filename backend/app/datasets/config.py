"""Building, reading and writing dataset source configurations.

Every read site goes through ``parse_config``, which dispatches on the tag
and constructs exactly one variant, so fields of another shape never leak
into a dataset's config.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from backend.app.datasets.schemas import (
    COMPANY_INTELLIGENCE_SYSTEM_TYPE,
    ApiConfig,
    CompanyIntelligenceConfig,
    DatasetConfig,
    DataSourceType,
    FolderConfig,
    HttpMethod,
)
from backend.app.errors import MissingRequiredField, ValidationError

logger = logging.getLogger(__name__)


_API_KEYS = ("apiEndpoint", "apiMethod", "apiHeaders")
_FOLDER_KEYS = ("folderPath", "filePattern")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _api_method(value: Any) -> HttpMethod:
    method = _clean(value)
    if method is None:
        return HttpMethod.GET
    try:
        return HttpMethod(method.upper())
    except ValueError:
        raise ValidationError(
            f"apiMethod must be one of GET, POST, got {method!r}", field="apiMethod"
        ) from None


def _api_headers(value: Any) -> Optional[str]:
    """Headers are stored as JSON text; a JSON object is serialized."""
    if value is None:
        return None
    if isinstance(value, dict):
        return json.dumps(value)
    if not isinstance(value, str):
        raise ValidationError("apiHeaders must be a JSON string", field="apiHeaders")
    return value if value.strip() else None


def build_config(source_type: DataSourceType, fields: Mapping[str, Any]) -> DatasetConfig:
    """Validate source fields (wire names) into the config for ``source_type``.

    Company intelligence ignores ``fields`` entirely.
    """
    if source_type is DataSourceType.COMPANY:
        return CompanyIntelligenceConfig()

    if source_type is DataSourceType.API:
        endpoint = _clean(fields.get("apiEndpoint"))
        if endpoint is None:
            raise MissingRequiredField("apiEndpoint")
        return ApiConfig(
            api_endpoint=endpoint,
            api_method=_api_method(fields.get("apiMethod")),
            api_headers=_api_headers(fields.get("apiHeaders")),
        )

    if source_type is DataSourceType.FOLDER:
        folder_path = _clean(fields.get("folderPath"))
        if folder_path is None:
            raise MissingRequiredField("folderPath")
        return FolderConfig(
            folder_path=folder_path,
            file_pattern=_clean(fields.get("filePattern")),
        )

    raise ValidationError(f"unsupported dataSourceType {source_type!r}", field="dataSourceType")


def source_type_of(raw: Optional[Mapping[str, Any]]) -> DataSourceType:
    """Tag of a persisted config; untagged configs are API configs."""
    raw = raw or {}
    tag = raw.get("dataSourceType")
    if tag is None:
        if raw.get("systemType") == COMPANY_INTELLIGENCE_SYSTEM_TYPE:
            return DataSourceType.COMPANY
        return DataSourceType.API
    try:
        return DataSourceType.parse(tag)
    except ValueError:
        raise ValidationError(
            f"unknown dataSourceType {tag!r}", field="dataSourceType"
        ) from None


def parse_config(raw: Optional[Mapping[str, Any]]) -> DatasetConfig:
    """Read a persisted config, keeping only the keys of its own variant."""
    raw = raw or {}
    source_type = source_type_of(raw)
    if source_type is DataSourceType.COMPANY:
        return CompanyIntelligenceConfig()

    keys = _API_KEYS if source_type is DataSourceType.API else _FOLDER_KEYS
    payload = {key: raw[key] for key in keys if raw.get(key) is not None}
    payload["dataSourceType"] = source_type.value
    model = ApiConfig if source_type is DataSourceType.API else FolderConfig
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        logger.error(
            "dataset_config_unreadable",
            extra={"data_source_type": source_type.value, "errors": exc.errors()},
        )
        raise ValidationError(f"stored {source_type.value} config is invalid", field="config") from exc


def dump_config(config: DatasetConfig) -> Dict[str, Any]:
    """JSON-safe dict for the ``config`` column, tag included."""
    return config.model_dump(by_alias=True, mode="json", exclude_none=True)


def rebuild_config(
    current: DatasetConfig,
    source_type: Optional[DataSourceType],
    fields: Mapping[str, Any],
) -> DatasetConfig:
    """Apply an update's source fields to ``current``.

    A different tag discards the current config and builds the new one from
    ``fields`` alone. The same tag lays ``fields`` over the current values.
    """
    current_type = DataSourceType(current.data_source_type)
    target = source_type or current_type
    if target is not current_type:
        return build_config(target, fields)

    merged = {key: value for key, value in dump_config(current).items() if key != "dataSourceType"}
    merged.update(fields)
    return build_config(target, merged)


def is_discoverable(dataset: Any) -> bool:
    """True iff the dataset is both public and active."""
    return bool(dataset.is_public) and bool(dataset.is_active)


__all__ = [
    "build_config",
    "source_type_of",
    "parse_config",
    "dump_config",
    "rebuild_config",
    "is_discoverable",
]
