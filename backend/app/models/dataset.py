"""Dataset model - datasets published to the store and the Live Data node.

The source configuration is persisted twice from one validated object: the
tag in ``data_source_type`` (for filtering) and the full config, tag
included, in ``config``. Only ``backend.app.datasets.registry`` writes them.
"""
from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin


class Dataset(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Dataset entity.

    Attributes:
        id: Dataset UUID
        name: Display name
        description: Optional long description
        category: Store category
        type: "live" or "dataset"
        price: List price
        featured: Whether the store highlights the dataset
        formats: Ordered list of delivery formats (duplicates allowed)
        features: Ordered list of marketing bullet points
        is_active: Whether the dataset is switched on
        is_public: Whether external consumers may see the dataset
        data_source_type: Tag of the stored config ("api", "folder", "company")
        config: Source configuration, including its tag
        created_by: User who created the dataset
    """
    __tablename__ = "datasets"

    name: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text(),
        nullable=True,
    )
    category: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    price: Mapped[float] = mapped_column(
        Float(),
        nullable=False,
        default=0.0,
    )
    featured: Mapped[bool] = mapped_column(
        Boolean(),
        nullable=False,
        default=False,
        server_default=false(),
    )
    formats: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    size: Mapped[Optional[str]] = mapped_column(
        Text(),
        nullable=True,
    )
    icon: Mapped[Optional[str]] = mapped_column(
        Text(),
        nullable=True,
    )
    features: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean(),
        nullable=False,
        default=True,
        server_default=true(),
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean(),
        nullable=False,
        default=False,
        server_default=false(),
    )
    data_source_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    config: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Indexes
    __table_args__ = (
        Index("datasets_category_idx", "category"),
        Index("datasets_type_idx", "type"),
        Index("datasets_featured_idx", "featured"),
        Index("datasets_visibility_idx", "is_public", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Dataset(id={self.id}, source={self.data_source_type}, "
            f"public={self.is_public}, active={self.is_active})>"
        )
