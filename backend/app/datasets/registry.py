"""Dataset registry: validated lifecycle of Dataset records.

Each public method runs in its own transaction. Toggles are a single
``UPDATE ... SET flag = NOT flag`` statement so concurrent toggles of the
same row are serialised by the database; other writes lock the row they read.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.datasets.config import (
    build_config,
    dump_config,
    parse_config,
    rebuild_config,
)
from backend.app.datasets.schemas import (
    ApiConfig,
    DatasetConfig,
    DatasetDraft,
    DatasetOut,
    DatasetPatch,
)
from backend.app.errors import DomainError, MissingRequiredField, NotFound, ValidationError
from backend.app.models.dataset import Dataset
from backend.app.telemetry.metrics import observe_dataset_operation
from backend.app.utils.db import run_in_transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

MALFORMED_HEADERS = "MalformedHeaders"

_PLAIN_PATCH_FIELDS = ("description", "size", "icon")
_FLAG_PATCH_FIELDS = ("featured", "is_active", "is_public")


def config_warnings(config: DatasetConfig) -> List[str]:
    """Non-fatal problems with a stored config, as warning codes."""
    if isinstance(config, ApiConfig) and config.headers_malformed:
        return [MALFORMED_HEADERS]
    return []


def _required_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise MissingRequiredField(field)
    return text


def _clean_items(values: Iterable[str]) -> List[str]:
    return [item.strip() for item in values if item and item.strip()]


def _to_out(row: Dataset) -> DatasetOut:
    # The column tag is authoritative; it is always written with the config.
    config = parse_config({**(row.config or {}), "dataSourceType": row.data_source_type})
    return DatasetOut(
        id=row.id,
        name=row.name,
        description=row.description,
        category=row.category,
        type=row.type,
        price=row.price,
        featured=row.featured,
        formats=list(row.formats or []),
        size=row.size,
        icon=row.icon,
        features=list(row.features or []),
        is_active=row.is_active,
        is_public=row.is_public,
        config=config,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class DatasetRegistry:
    """Create, edit, toggle and delete datasets.

    Args:
        session_factory: Session factory for the datasets database. Defaults
            to the process-wide factory from ``backend.app.utils.db``.
        strict_headers: Reject malformed ``apiHeaders`` instead of storing
            them with a warning.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        *,
        strict_headers: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self._strict_headers = strict_headers

    async def _run(
        self,
        operation: str,
        fn: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        try:
            result = await run_in_transaction(fn, session_factory=self._session_factory)
        except DomainError:
            observe_dataset_operation(operation, "rejected")
            raise
        except Exception:
            observe_dataset_operation(operation, "error")
            raise
        observe_dataset_operation(operation, "ok")
        return result

    def _check_headers(self, config: DatasetConfig, dataset_id: Optional[uuid.UUID]) -> None:
        if not config_warnings(config):
            return
        if self._strict_headers:
            raise ValidationError("apiHeaders must be a JSON object", field="apiHeaders")
        logger.warning(
            "dataset_headers_malformed",
            extra={"dataset_id": str(dataset_id) if dataset_id else None},
        )

    @staticmethod
    async def _load_for_update(session: AsyncSession, dataset_id: uuid.UUID) -> Dataset:
        stmt = sa.select(Dataset).where(Dataset.id == dataset_id).with_for_update()
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise NotFound("Dataset", dataset_id)
        return row

    @staticmethod
    async def _finish(session: AsyncSession, row: Dataset) -> DatasetOut:
        await session.flush()
        await session.refresh(row)
        return _to_out(row)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, dataset_id: uuid.UUID) -> DatasetOut:
        async def _op(session: AsyncSession) -> DatasetOut:
            row = await session.get(Dataset, dataset_id)
            if row is None:
                raise NotFound("Dataset", dataset_id)
            return _to_out(row)

        return await run_in_transaction(_op, session_factory=self._session_factory)

    async def list_all(self) -> List[DatasetOut]:
        """Every dataset regardless of visibility, newest first."""
        stmt = sa.select(Dataset).order_by(Dataset.created_at.desc(), Dataset.name)

        async def _op(session: AsyncSession) -> List[DatasetOut]:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_out(row) for row in rows]

        return await run_in_transaction(_op, session_factory=self._session_factory)

    async def list_discoverable(self) -> List[DatasetOut]:
        """Datasets that are both public and active."""
        stmt = (
            sa.select(Dataset)
            .where(Dataset.is_public.is_(True), Dataset.is_active.is_(True))
            .order_by(Dataset.featured.desc(), Dataset.created_at.desc(), Dataset.name)
        )

        async def _op(session: AsyncSession) -> List[DatasetOut]:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_out(row) for row in rows]

        return await run_in_transaction(_op, session_factory=self._session_factory)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        draft: DatasetDraft,
        created_by: Optional[uuid.UUID] = None,
    ) -> DatasetOut:
        async def _op(session: AsyncSession) -> DatasetOut:
            name = _required_text(draft.name, "name")
            category = _required_text(draft.category, "category")
            config = build_config(draft.resolved_source_type(), draft.source_fields())
            self._check_headers(config, None)

            row = Dataset(
                name=name,
                description=draft.description,
                category=category,
                type=draft.type.value,
                price=draft.price,
                featured=draft.featured,
                formats=_clean_items(draft.formats),
                size=draft.size,
                icon=draft.icon,
                features=_clean_items(draft.features),
                is_active=draft.is_active,
                is_public=draft.is_public,
                data_source_type=config.data_source_type,
                config=dump_config(config),
                created_by=created_by,
            )
            session.add(row)
            out = await self._finish(session, row)
            logger.info(
                "dataset_created",
                extra={"dataset_id": str(out.id), "data_source_type": out.data_source_type.value},
            )
            return out

        return await self._run("create", _op)

    async def update(self, dataset_id: uuid.UUID, patch: DatasetPatch) -> DatasetOut:
        """Apply the fields present in ``patch``.

        A change of source type replaces the whole config with one built from
        the patch alone; other source edits are merged into the current config.
        """
        provided = patch.model_fields_set

        async def _op(session: AsyncSession) -> DatasetOut:
            row = await self._load_for_update(session, dataset_id)

            if "name" in provided:
                row.name = _required_text(patch.name, "name")
            if "category" in provided:
                row.category = _required_text(patch.category, "category")
            if "type" in provided and patch.type is not None:
                row.type = patch.type.value
            if "price" in provided and patch.price is not None:
                row.price = patch.price
            for field in _PLAIN_PATCH_FIELDS:
                if field in provided:
                    setattr(row, field, getattr(patch, field))
            for field in _FLAG_PATCH_FIELDS:
                value = getattr(patch, field)
                if field in provided and value is not None:
                    setattr(row, field, value)
            if "formats" in provided and patch.formats is not None:
                row.formats = _clean_items(patch.formats)
            if "features" in provided and patch.features is not None:
                row.features = _clean_items(patch.features)

            if patch.touches_source():
                current = _to_out(row).config
                config = rebuild_config(current, patch.requested_source_type(), patch.source_fields())
                self._check_headers(config, row.id)
                if config.data_source_type != current.data_source_type:
                    logger.info(
                        "dataset_source_replaced",
                        extra={
                            "dataset_id": str(row.id),
                            "from": current.data_source_type,
                            "to": config.data_source_type,
                        },
                    )
                row.data_source_type = config.data_source_type
                row.config = dump_config(config)

            out = await self._finish(session, row)
            logger.info("dataset_updated", extra={"dataset_id": str(out.id)})
            return out

        return await self._run("update", _op)

    async def delete(self, dataset_id: uuid.UUID) -> None:
        async def _op(session: AsyncSession) -> None:
            result = await session.execute(sa.delete(Dataset).where(Dataset.id == dataset_id))
            if result.rowcount == 0:
                raise NotFound("Dataset", dataset_id)
            logger.info("dataset_deleted", extra={"dataset_id": str(dataset_id)})

        await self._run("delete", _op)

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    async def _toggle(self, dataset_id: uuid.UUID, field: str) -> DatasetOut:
        column = getattr(Dataset, field)
        stmt = (
            sa.update(Dataset)
            .where(Dataset.id == dataset_id)
            .values({column: sa.not_(column)})
            .execution_options(synchronize_session=False)
        )

        async def _op(session: AsyncSession) -> DatasetOut:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise NotFound("Dataset", dataset_id)
            row = await session.get(Dataset, dataset_id, populate_existing=True)
            assert row is not None
            logger.info(
                "dataset_toggled",
                extra={"dataset_id": str(dataset_id), "field": field, "value": getattr(row, field)},
            )
            return _to_out(row)

        return await self._run(f"toggle_{field.removeprefix('is_')}", _op)

    async def toggle_featured(self, dataset_id: uuid.UUID) -> DatasetOut:
        return await self._toggle(dataset_id, "featured")

    async def toggle_active(self, dataset_id: uuid.UUID) -> DatasetOut:
        return await self._toggle(dataset_id, "is_active")

    async def toggle_public(self, dataset_id: uuid.UUID) -> DatasetOut:
        return await self._toggle(dataset_id, "is_public")

    # ------------------------------------------------------------------
    # Format / feature lists
    # ------------------------------------------------------------------

    async def _append(self, dataset_id: uuid.UUID, field: str, value: Any) -> DatasetOut:
        async def _op(session: AsyncSession) -> DatasetOut:
            item = str(value or "").strip()
            if not item:
                raise ValidationError(f"{field} entries cannot be blank", field=field)
            row = await self._load_for_update(session, dataset_id)
            setattr(row, field, [*(getattr(row, field) or []), item])
            return await self._finish(session, row)

        return await self._run(f"add_{field}", _op)

    async def _remove(self, dataset_id: uuid.UUID, field: str, index: int) -> DatasetOut:
        async def _op(session: AsyncSession) -> DatasetOut:
            row = await self._load_for_update(session, dataset_id)
            items = list(getattr(row, field) or [])
            if 0 <= index < len(items):
                del items[index]
                setattr(row, field, items)
            else:
                logger.info(
                    "dataset_list_index_out_of_range",
                    extra={"dataset_id": str(dataset_id), "field": field, "index": index},
                )
            return await self._finish(session, row)

        return await self._run(f"remove_{field}", _op)

    async def add_format(self, dataset_id: uuid.UUID, value: str) -> DatasetOut:
        return await self._append(dataset_id, "formats", value)

    async def remove_format(self, dataset_id: uuid.UUID, index: int) -> DatasetOut:
        return await self._remove(dataset_id, "formats", index)

    async def add_feature(self, dataset_id: uuid.UUID, value: str) -> DatasetOut:
        return await self._append(dataset_id, "features", value)

    async def remove_feature(self, dataset_id: uuid.UUID, index: int) -> DatasetOut:
        return await self._remove(dataset_id, "features", index)


__all__ = ["MALFORMED_HEADERS", "DatasetRegistry", "config_warnings"]
