"""SQLAlchemy declarative base for the parking booking assistant."""

from datetime import datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from core.utils_datetime import get_current_datetime


# Naming convention for constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """Mixin for adding timestamp columns to models.

    Values are set application-side in UTC so every backend stores the same thing.
    """

    created_at: Mapped[datetime] = mapped_column(
        default=get_current_datetime,
        nullable=False,
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        default=get_current_datetime,
        onupdate=get_current_datetime,
        nullable=False,
    )
