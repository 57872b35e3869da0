"""Base classes and mixins for fedmrf models"""
from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy import Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from fedmrf.utils import utcnow


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        onupdate=utcnow
    )


class SoftDeleteMixin:
    """Mixin for soft deletion"""
    deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    def soft_delete(self) -> None:
        """Mark record as deleted"""
        self.deleted = True
        self.deleted_at = utcnow()
