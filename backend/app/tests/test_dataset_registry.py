from __future__ import annotations

import asyncio
import uuid
from typing import Any

import pytest

from backend.app.datasets.registry import MALFORMED_HEADERS, DatasetRegistry, config_warnings
from backend.app.datasets.schemas import (
    ApiConfig,
    CompanyIntelligenceConfig,
    DatasetDraft,
    DatasetPatch,
    DataSourceType,
    FolderConfig,
)
from backend.app.errors import MissingRequiredField, NotFound, ValidationError


def draft(**fields: Any) -> DatasetDraft:
    body = {"name": "Weather feed", "category": "climate", "apiEndpoint": "https://example.com/wx"}
    body.update(fields)
    return DatasetDraft.model_validate(body)


def patch(**fields: Any) -> DatasetPatch:
    return DatasetPatch.model_validate(fields)


# --- create ---


async def test_create_applies_defaults(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())

    assert dataset.is_active is True
    assert dataset.is_public is False
    assert dataset.featured is False
    assert dataset.type.value == "live"
    assert dataset.price == 0.0
    assert dataset.data_source_type is DataSourceType.API
    assert isinstance(dataset.config, ApiConfig)
    assert dataset.config.api_method.value == "GET"
    assert dataset.created_at is not None


@pytest.mark.parametrize("field", ["name", "category"])
async def test_create_requires_name_and_category(registry: DatasetRegistry, field: str) -> None:
    with pytest.raises(MissingRequiredField) as excinfo:
        await registry.create(draft(**{field: "  "}))
    assert excinfo.value.field == field


async def test_create_api_without_endpoint_fails(registry: DatasetRegistry) -> None:
    with pytest.raises(MissingRequiredField) as excinfo:
        await registry.create(draft(apiEndpoint="", dataSourceType="api"))
    assert excinfo.value.field == "apiEndpoint"
    assert await registry.list_all() == []


async def test_create_folder_requires_path(registry: DatasetRegistry) -> None:
    with pytest.raises(MissingRequiredField) as excinfo:
        await registry.create(draft(dataSourceType="folder"))
    assert excinfo.value.field == "folderPath"


async def test_create_company_intelligence_forces_fixed_config(registry: DatasetRegistry) -> None:
    dataset = await registry.create(
        draft(
            dataSourceType="company-intelligence",
            apiEndpoint="https://override.example.com",
            apiMethod="POST",
        )
    )
    assert isinstance(dataset.config, CompanyIntelligenceConfig)
    assert dataset.config.api_endpoint == "/api/companies"
    assert dataset.config.api_method == "GET"

    stored = await registry.get(dataset.id)
    assert stored.to_api()["config"]["apiEndpoint"] == "/api/companies"


async def test_create_reads_nested_config(registry: DatasetRegistry) -> None:
    dataset = await registry.create(
        DatasetDraft.model_validate(
            {
                "name": "Reports",
                "category": "finance",
                "config": {"dataSourceType": "folder", "folderPath": "/mnt/reports", "filePattern": "*.csv"},
            }
        )
    )
    assert isinstance(dataset.config, FolderConfig)
    assert dataset.config.folder_path == "/mnt/reports"
    assert dataset.config.file_pattern == "*.csv"


async def test_create_strips_list_values(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(formats=[" CSV ", "", "JSON"], features=["Hourly", "  "]))
    assert dataset.formats == ["CSV", "JSON"]
    assert dataset.features == ["Hourly"]


async def test_malformed_headers_warn_by_default(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(apiHeaders="{broken"))
    assert dataset.config.api_headers == "{broken"
    assert config_warnings(dataset.config) == [MALFORMED_HEADERS]


async def test_malformed_headers_rejected_in_strict_mode(session_factory) -> None:
    strict = DatasetRegistry(session_factory, strict_headers=True)
    with pytest.raises(ValidationError) as excinfo:
        await strict.create(draft(apiHeaders="{broken"))
    assert excinfo.value.field == "apiHeaders"


async def test_nested_header_object_is_stored_as_json(registry: DatasetRegistry) -> None:
    nested = draft(
        apiEndpoint=None,
        config={
            "dataSourceType": "api",
            "apiEndpoint": "https://example.com/wx",
            "apiHeaders": {"Authorization": "Bearer t"},
        },
    )
    dataset = await registry.create(nested)

    stored = await registry.get(dataset.id)
    assert stored.config.parsed_headers() == {"Authorization": "Bearer t"}
    assert config_warnings(stored.config) == []


async def test_top_level_header_object_matches_nested(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(apiHeaders={"X-Key": "1"}))
    assert dataset.config.parsed_headers() == {"X-Key": "1"}


async def test_non_object_headers_rejected(registry: DatasetRegistry) -> None:
    body = draft(config={"apiHeaders": ["X-Key", "1"]})
    with pytest.raises(ValidationError) as excinfo:
        await registry.create(body)
    assert excinfo.value.field == "apiHeaders"


# --- update ---


async def test_update_is_partial(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(description="Hourly observations", price=5))
    updated = await registry.update(dataset.id, patch(name="Weather feed v2"))

    assert updated.name == "Weather feed v2"
    assert updated.description == "Hourly observations"
    assert updated.price == 5
    assert updated.config == dataset.config


async def test_update_rejects_empty_name(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    with pytest.raises(MissingRequiredField):
        await registry.update(dataset.id, patch(name=""))
    assert (await registry.get(dataset.id)).name == "Weather feed"


async def test_switching_api_to_folder_replaces_config(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(apiMethod="POST", apiHeaders='{"X-Key": "1"}'))
    updated = await registry.update(
        dataset.id, patch(dataSourceType="folder", folderPath="/data/wx")
    )

    assert isinstance(updated.config, FolderConfig)
    stored = (await registry.get(dataset.id)).to_api()
    assert stored["dataSourceType"] == "folder"
    assert stored["config"] == {"dataSourceType": "folder", "folderPath": "/data/wx"}
    assert "apiEndpoint" not in stored["config"]


async def test_switching_source_uses_patch_fields_only(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(dataSourceType="folder", folderPath="/data", apiEndpoint=None))
    with pytest.raises(MissingRequiredField) as excinfo:
        await registry.update(dataset.id, patch(dataSourceType="api"))
    assert excinfo.value.field == "apiEndpoint"
    assert isinstance((await registry.get(dataset.id)).config, FolderConfig)


async def test_editing_source_fields_merges_into_current_config(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft(apiMethod="POST"))
    updated = await registry.update(dataset.id, patch(apiEndpoint="https://example.com/wx/v2"))
    assert updated.config.api_endpoint == "https://example.com/wx/v2"
    assert updated.config.api_method.value == "POST"


async def test_update_visibility_flags(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    updated = await registry.update(dataset.id, patch(isPublic=True))
    assert updated.is_public is True
    assert updated.is_discoverable is True


async def test_update_missing_dataset(registry: DatasetRegistry) -> None:
    with pytest.raises(NotFound):
        await registry.update(uuid.uuid4(), patch(name="x"))


# --- toggles ---


async def test_toggle_active_twice_restores_value(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    first = await registry.toggle_active(dataset.id)
    second = await registry.toggle_active(dataset.id)
    assert first.is_active is False
    assert second.is_active is True


async def test_toggles_are_independent(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    await registry.toggle_public(dataset.id)
    toggled = await registry.toggle_featured(dataset.id)
    assert toggled.featured is True
    assert toggled.is_public is True
    assert toggled.is_active is True


async def test_visibility_state_machine_reaches_every_state(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    seen = {(dataset.is_public, dataset.is_active)}
    for toggle in (registry.toggle_active, registry.toggle_public, registry.toggle_active):
        dataset = await toggle(dataset.id)
        seen.add((dataset.is_public, dataset.is_active))
    assert seen == {(False, True), (False, False), (True, False), (True, True)}
    assert dataset.is_discoverable is True


async def test_concurrent_toggles_are_not_lost(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    await asyncio.gather(*(registry.toggle_active(dataset.id) for _ in range(4)))
    assert (await registry.get(dataset.id)).is_active is True

    await asyncio.gather(*(registry.toggle_active(dataset.id) for _ in range(3)))
    assert (await registry.get(dataset.id)).is_active is False


async def test_toggle_missing_dataset(registry: DatasetRegistry) -> None:
    with pytest.raises(NotFound):
        await registry.toggle_featured(uuid.uuid4())


# --- delete / read ---


async def test_delete_then_get_is_not_found(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    await registry.delete(dataset.id)
    with pytest.raises(NotFound):
        await registry.get(dataset.id)
    with pytest.raises(NotFound):
        await registry.delete(dataset.id)


async def test_list_discoverable_filters_on_both_flags(registry: DatasetRegistry) -> None:
    hidden = await registry.create(draft(name="private"))
    public = await registry.create(draft(name="public", isPublic=True))
    paused = await registry.create(draft(name="paused", isPublic=True, isActive=False))

    assert {d.id for d in await registry.list_all()} == {hidden.id, public.id, paused.id}
    assert [d.id for d in await registry.list_discoverable()] == [public.id]


# --- formats / features ---


async def test_add_and_remove_formats(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    await registry.add_format(dataset.id, " CSV ")
    await registry.add_format(dataset.id, "JSON")
    updated = await registry.add_format(dataset.id, "CSV")
    assert updated.formats == ["CSV", "JSON", "CSV"]

    updated = await registry.remove_format(dataset.id, 0)
    assert updated.formats == ["JSON", "CSV"]


@pytest.mark.parametrize("index", [5, -1])
async def test_remove_out_of_range_index_is_noop(registry: DatasetRegistry, index: int) -> None:
    dataset = await registry.create(draft(features=["Hourly", "Global"]))
    updated = await registry.remove_feature(dataset.id, index)
    assert updated.features == ["Hourly", "Global"]


async def test_add_blank_value_rejected(registry: DatasetRegistry) -> None:
    dataset = await registry.create(draft())
    with pytest.raises(ValidationError):
        await registry.add_feature(dataset.id, "   ")


async def test_list_edit_on_missing_dataset(registry: DatasetRegistry) -> None:
    with pytest.raises(NotFound):
        await registry.add_format(uuid.uuid4(), "CSV")
