"""Favorite and rating persistence tests."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime

from sqlalchemy import func, select

from mediashelf.database import Database
from mediashelf.db_models import MediaNodeRecord, UserItemDataRecord, UserRecord
from mediashelf.models import (
    ItemKind,
    MediaNode,
    PersonalizationRecord,
    User,
    UserDataSaveReason,
    UserItemDataView,
)
from mediashelf.services.personalization import (
    PersonalizationService,
    SqlUserDataStore,
)


async def _setup(tmp_path, name: str) -> tuple[Database, User, MediaNode]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / name}")
    await database.create_all()
    user = User(id=uuid.uuid4(), name="alice")
    node = MediaNode(
        id=uuid.uuid4(),
        kind=ItemKind.MOVIE,
        name="Arrival",
        last_refreshed_at=datetime(2024, 1, 1),
    )
    async with database.session_factory() as session:
        session.add(UserRecord(id=user.id, name=user.name))
        session.add(
            MediaNodeRecord(
                id=node.id,
                kind=node.kind.value,
                name=node.name,
                last_refreshed_at=node.last_refreshed_at,
            )
        )
        await session.commit()
    return database, user, node


async def _row_count(database: Database) -> int:
    async with database.session_factory() as session:
        result = await session.execute(select(func.count(UserItemDataRecord.id)))
        return result.scalar_one()


def test_missing_record_defaults_without_persisting(tmp_path) -> None:
    async def runner() -> None:
        database, user, node = await _setup(tmp_path, "defaults.db")
        service = PersonalizationService(SqlUserDataStore(database.session_factory))

        record = await service.get_or_create(user, node)

        assert record == PersonalizationRecord()
        assert await _row_count(database) == 0
        await database.dispose()

    asyncio.run(runner())


def test_set_favorite_is_idempotent_and_keeps_rating(tmp_path) -> None:
    async def runner() -> None:
        database, user, node = await _setup(tmp_path, "favorite.db")
        service = PersonalizationService(SqlUserDataStore(database.session_factory))

        await service.set_rating(user, node, True)
        first = await service.set_favorite(user, node, True)
        second = await service.set_favorite(user, node, True)

        assert first == second
        assert second.is_favorite is True
        assert await _row_count(database) == 1

        cleared = await service.set_favorite(user, node, False)
        assert cleared.is_favorite is False
        assert cleared.likes is True

        await database.dispose()

    asyncio.run(runner())


def test_rating_round_trip_and_delete(tmp_path) -> None:
    async def runner() -> None:
        database, user, node = await _setup(tmp_path, "rating.db")
        service = PersonalizationService(SqlUserDataStore(database.session_factory))

        liked = await service.set_rating(user, node, True)
        assert liked.likes is True
        assert (await service.get_or_create(user, node)).likes is True

        disliked = await service.set_rating(user, node, False)
        assert disliked.likes is False

        removed = await service.set_rating(user, node, None)
        assert removed.likes is None
        assert await service.get_or_create(user, node) == PersonalizationRecord()

        await database.dispose()

    asyncio.run(runner())


def test_records_are_scoped_per_user(tmp_path) -> None:
    async def runner() -> None:
        database, user, node = await _setup(tmp_path, "scoped.db")
        other = User(id=uuid.uuid4(), name="bob")
        service = PersonalizationService(SqlUserDataStore(database.session_factory))

        await service.set_favorite(user, node, True)

        assert (await service.get_or_create(other, node)).is_favorite is False
        await database.dispose()

    asyncio.run(runner())


class RecordingStorage:
    def __init__(self) -> None:
        self.record = PersonalizationRecord(played=True, play_count=4)
        self.saves: list[tuple[PersonalizationRecord, UserDataSaveReason]] = []

    async def get(self, user, node) -> PersonalizationRecord:
        return PersonalizationRecord(
            is_favorite=self.record.is_favorite,
            likes=self.record.likes,
            played=self.record.played,
            play_count=self.record.play_count,
        )

    async def save(self, user, node, record, reason) -> None:
        self.saves.append((record, reason))
        self.record = record

    async def get_view(self, user, node) -> UserItemDataView:
        return UserItemDataView.from_record(node, self.record)


def test_saves_full_record_with_rating_reason() -> None:
    storage = RecordingStorage()
    service = PersonalizationService(storage)
    user = User(id=uuid.uuid4(), name="alice")
    node = MediaNode(
        id=uuid.uuid4(),
        kind=ItemKind.EPISODE,
        name="Pilot",
        last_refreshed_at=datetime(2024, 1, 1),
    )

    view = asyncio.run(service.set_favorite(user, node, True))

    assert len(storage.saves) == 1
    saved, reason = storage.saves[0]
    assert reason is UserDataSaveReason.UPDATE_USER_RATING
    assert saved == PersonalizationRecord(is_favorite=True, played=True, play_count=4)
    assert view.played is True
    assert view.key == node.id.hex
