"""SQLAlchemy ORM models backing users, the catalog and per-user item data."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class UserRecord(Base):
    """Persisted user account with its library access preferences."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120))
    is_administrator: Mapped[bool] = mapped_column(Boolean, default=False)
    hide_played_in_latest: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_all_folders: Mapped[bool] = mapped_column(Boolean, default=True)
    enabled_folders: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    max_parental_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)


class MediaNodeRecord(Base):
    """A catalog entry: folder, person, playable item or extra."""

    __tablename__ = "media_nodes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(32), index=True)
    name: Mapped[str] = mapped_column(String(255))
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_primary_image: Mapped[bool] = mapped_column(Boolean, default=False)
    image_tags: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("media_nodes.id", ondelete="CASCADE"), nullable=True, index=True
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("media_nodes.id", ondelete="CASCADE"), nullable=True, index=True
    )
    extra_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    library_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    parental_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    date_created: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    last_refreshed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )


class UserItemDataRecord(Base):
    """Per-user personalization state for a single catalog entry."""

    __tablename__ = "user_item_data"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_user_item_data"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE")
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("media_nodes.id", ondelete="CASCADE")
    )
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    likes: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    played: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    play_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
