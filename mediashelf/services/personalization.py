"""Per-user favorite and rating state."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import UserItemDataRecord
from ..models import (
    MediaNode,
    PersonalizationRecord,
    User,
    UserDataSaveReason,
    UserItemDataView,
)

logger = logging.getLogger(__name__)


class PersonalizationStorage(Protocol):
    """Key-value storage of personalization records keyed by user and node."""

    async def get(self, user: User, node: MediaNode) -> PersonalizationRecord: ...

    async def save(
        self,
        user: User,
        node: MediaNode,
        record: PersonalizationRecord,
        reason: UserDataSaveReason,
    ) -> None: ...

    async def get_view(self, user: User, node: MediaNode) -> UserItemDataView: ...


class PersonalizationService:
    """Read-modify-write operations on a user's favorite and rating state.

    Callers must have authorized the (user, node) pair beforehand. Writes are
    unconditional overwrites, so concurrent updates resolve as last writer
    wins.
    """

    def __init__(self, storage: PersonalizationStorage) -> None:
        self._storage = storage

    async def get_or_create(
        self, user: User, node: MediaNode
    ) -> PersonalizationRecord:
        return await self._storage.get(user, node)

    async def get_view(self, user: User, node: MediaNode) -> UserItemDataView:
        return await self._storage.get_view(user, node)

    async def set_favorite(
        self, user: User, node: MediaNode, is_favorite: bool
    ) -> UserItemDataView:
        record = await self.get_or_create(user, node)
        record.is_favorite = is_favorite
        await self._storage.save(
            user, node, record, UserDataSaveReason.UPDATE_USER_RATING
        )
        return await self._storage.get_view(user, node)

    async def set_rating(
        self, user: User, node: MediaNode, likes: bool | None
    ) -> UserItemDataView:
        """Store a like (``True``), dislike (``False``) or clear it (``None``)."""

        record = await self.get_or_create(user, node)
        record.likes = likes
        await self._storage.save(
            user, node, record, UserDataSaveReason.UPDATE_USER_RATING
        )
        return await self._storage.get_view(user, node)


class SqlUserDataStore:
    """Personalization storage backed by the ``user_item_data`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, user: User, node: MediaNode) -> PersonalizationRecord:
        async with self._session_factory() as session:
            row = await self._load_row(session, user, node)
        if row is None:
            return PersonalizationRecord()
        return PersonalizationRecord(
            is_favorite=row.is_favorite,
            likes=row.likes,
            played=row.played,
            play_count=row.play_count or 0,
        )

    async def save(
        self,
        user: User,
        node: MediaNode,
        record: PersonalizationRecord,
        reason: UserDataSaveReason,
    ) -> None:
        async with self._session_factory() as session:
            row = await self._load_row(session, user, node)
            if row is None:
                row = UserItemDataRecord(user_id=user.id, item_id=node.id)
                session.add(row)
            row.is_favorite = record.is_favorite
            row.likes = record.likes
            row.played = record.played
            row.play_count = record.play_count
            await session.commit()
        logger.debug(
            "Saved user data for %s on %s (%s)", user.id, node.id, reason.value
        )

    async def get_view(self, user: User, node: MediaNode) -> UserItemDataView:
        record = await self.get(user, node)
        return UserItemDataView.from_record(node, record)

    @staticmethod
    async def _load_row(
        session: AsyncSession, user: User, node: MediaNode
    ) -> UserItemDataRecord | None:
        stmt = select(UserItemDataRecord).where(
            UserItemDataRecord.user_id == user.id,
            UserItemDataRecord.item_id == node.id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
