"""Consumer-facing dataset listing (store and Live Data node)."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..datasets.registry import DatasetRegistry
from .deps import get_dataset_registry
from .responses import ok


router = APIRouter(
    prefix="/datasets",
    tags=["datasets"],
)


@router.get("")
async def list_discoverable_datasets(
    registry: DatasetRegistry = Depends(get_dataset_registry),
) -> Dict[str, Any]:
    """Only datasets that are both public and active."""
    datasets = await registry.list_discoverable()
    return ok([dataset.to_api() for dataset in datasets])
