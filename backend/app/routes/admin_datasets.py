"""Admin console routes for dataset management.

All routes require an admin principal. Domain errors raised by the registry
are turned into envelope responses by the handlers in ``backend.app.main``.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ..auth import UserPrincipal, require_admin
from ..datasets.registry import DatasetRegistry, config_warnings
from ..datasets.schemas import DatasetDraft, DatasetOut, DatasetPatch, ListItem
from .deps import get_dataset_registry
from .responses import ok


router = APIRouter(
    prefix="/admin/datasets",
    tags=["admin", "datasets"],
    dependencies=[Depends(require_admin)],
)


def _with_warnings(dataset: DatasetOut, message: str) -> Dict[str, Any]:
    return ok(dataset.to_api(), message=message, warnings=config_warnings(dataset.config))


@router.get("")
async def list_datasets(
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    datasets = await registry.list_all()
    return ok([dataset.to_api() for dataset in datasets])


@router.get("/{dataset_id}")
async def get_dataset(
    dataset_id: uuid.UUID,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.get(dataset_id)
    return ok(dataset.to_api())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_dataset(
    draft: DatasetDraft,
    registry: DatasetRegistry = Depends(get_dataset_registry),
    admin: UserPrincipal = Depends(require_admin),
) -> Dict[str, Any]:
    dataset = await registry.create(draft, created_by=admin.id)
    return _with_warnings(dataset, "Dataset created successfully")


@router.put("/{dataset_id}")
async def update_dataset(
    dataset_id: uuid.UUID,
    patch: DatasetPatch,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.update(dataset_id, patch)
    return _with_warnings(dataset, "Dataset updated successfully")


@router.delete("/{dataset_id}")
async def delete_dataset(
    dataset_id: uuid.UUID,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    await registry.delete(dataset_id)
    return ok(None, message="Dataset deleted successfully")


@router.put("/{dataset_id}/toggle-featured")
async def toggle_featured(
    dataset_id: uuid.UUID,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.toggle_featured(dataset_id)
    state = "featured" if dataset.featured else "unfeatured"
    return ok(dataset.to_api(), message=f"Dataset {state} successfully")


@router.put("/{dataset_id}/toggle-active")
async def toggle_active(
    dataset_id: uuid.UUID,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.toggle_active(dataset_id)
    state = "activated" if dataset.is_active else "deactivated"
    return ok(dataset.to_api(), message=f"Dataset {state} successfully")


@router.put("/{dataset_id}/toggle-public")
async def toggle_public(
    dataset_id: uuid.UUID,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.toggle_public(dataset_id)
    state = "public" if dataset.is_public else "private"
    return ok(dataset.to_api(), message=f"Dataset is now {state}")


# Format and feature lists

@router.post("/{dataset_id}/formats")
async def add_format(
    dataset_id: uuid.UUID,
    item: ListItem,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.add_format(dataset_id, item.value)
    return ok(dataset.to_api())


@router.delete("/{dataset_id}/formats/{index}")
async def remove_format(
    dataset_id: uuid.UUID,
    index: int,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.remove_format(dataset_id, index)
    return ok(dataset.to_api())


@router.post("/{dataset_id}/features")
async def add_feature(
    dataset_id: uuid.UUID,
    item: ListItem,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.add_feature(dataset_id, item.value)
    return ok(dataset.to_api())


@router.delete("/{dataset_id}/features/{index}")
async def remove_feature(
    dataset_id: uuid.UUID,
    index: int,
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    dataset = await registry.remove_feature(dataset_id, index)
    return ok(dataset.to_api())
