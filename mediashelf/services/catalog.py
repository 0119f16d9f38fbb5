"""Catalog and user directory lookups backed by the SQL database."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Protocol, Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import MediaNodeRecord, UserItemDataRecord, UserRecord
from ..models import (
    FOLDER_KINDS,
    ExtraType,
    GroupedCandidate,
    ItemKind,
    LatestItemsQuery,
    MediaNode,
    User,
)
from .visibility import AccessPolicy, LibraryAccessPolicy

logger = logging.getLogger(__name__)

ROOT_FOLDER_NAME = "Media Folders"

# Playable kinds that get intros played ahead of them.
INTRO_TARGET_KINDS: frozenset[ItemKind] = frozenset(
    {ItemKind.MOVIE, ItemKind.EPISODE, ItemKind.VIDEO}
)

_NON_LATEST_KINDS: frozenset[ItemKind] = FOLDER_KINDS | {ItemKind.PERSON}


class UserDirectory(Protocol):
    async def get_by_id(self, user_id: uuid.UUID) -> User | None: ...


class Catalog(Protocol):
    """Read access to the media catalog."""

    async def get_root_folder(self) -> MediaNode: ...

    async def get_by_id(self, item_id: uuid.UUID) -> MediaNode | None: ...

    async def get_intros(self, node: MediaNode, user: User) -> list[MediaNode]: ...

    async def get_extras(self, node: MediaNode) -> list[MediaNode]: ...

    async def get_local_trailers(self, node: MediaNode) -> list[MediaNode]: ...

    async def query_latest(
        self, query: LatestItemsQuery
    ) -> list[GroupedCandidate]: ...


def user_from_record(record: UserRecord) -> User:
    enabled = frozenset(uuid.UUID(str(value)) for value in record.enabled_folders or [])
    return User(
        id=record.id,
        name=record.name,
        hide_played_in_latest=bool(record.hide_played_in_latest),
        is_administrator=bool(record.is_administrator),
        enable_all_folders=bool(record.enable_all_folders),
        enabled_folders=enabled,
        max_parental_rating=record.max_parental_rating,
    )


def node_from_record(record: MediaNodeRecord) -> MediaNode:
    return MediaNode(
        id=record.id,
        kind=ItemKind(record.kind),
        name=record.name,
        overview=record.overview,
        has_primary_image=bool(record.has_primary_image),
        last_refreshed_at=record.last_refreshed_at,
        parent_id=record.parent_id,
        owner_id=record.owner_id,
        extra_type=ExtraType(record.extra_type) if record.extra_type else None,
        library_id=record.library_id,
        parental_rating=record.parental_rating,
        date_created=record.date_created,
        image_tags=dict(record.image_tags or {}),
    )


class SqlUserDirectory:
    """Resolve user accounts from the ``users`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        async with self._session_factory() as session:
            record = await session.get(UserRecord, user_id)
        if record is None:
            return None
        return user_from_record(record)


class SqlCatalog:
    """Catalog queries over the ``media_nodes`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        access_policy: AccessPolicy | None = None,
        intro_limit: int = 1,
    ) -> None:
        self._session_factory = session_factory
        self._access_policy = access_policy or LibraryAccessPolicy()
        self._intro_limit = intro_limit

    async def get_root_folder(self) -> MediaNode:
        """Return the library root, creating it on first use."""

        async with self._session_factory() as session:
            stmt = (
                select(MediaNodeRecord)
                .where(MediaNodeRecord.kind == ItemKind.ROOT_FOLDER.value)
                .order_by(MediaNodeRecord.date_created)
                .limit(1)
            )
            record = (await session.execute(stmt)).scalar_one_or_none()
            if record is None:
                now = datetime.utcnow()
                record = MediaNodeRecord(
                    kind=ItemKind.ROOT_FOLDER.value,
                    name=ROOT_FOLDER_NAME,
                    date_created=now,
                    last_refreshed_at=now,
                )
                session.add(record)
                await session.commit()
                logger.info("Created library root folder %s", record.id)
            return node_from_record(record)

    async def get_by_id(self, item_id: uuid.UUID) -> MediaNode | None:
        async with self._session_factory() as session:
            record = await session.get(MediaNodeRecord, item_id)
        if record is None:
            return None
        return node_from_record(record)

    async def get_extras(self, node: MediaNode) -> list[MediaNode]:
        async with self._session_factory() as session:
            stmt = (
                select(MediaNodeRecord)
                .where(MediaNodeRecord.owner_id == node.id)
                .order_by(MediaNodeRecord.name, MediaNodeRecord.date_created)
            )
            records = (await session.execute(stmt)).scalars().all()
        return [node_from_record(record) for record in records]

    async def get_local_trailers(self, node: MediaNode) -> list[MediaNode]:
        """Return trailer items attached to ``node``."""

        async with self._session_factory() as session:
            stmt = (
                select(MediaNodeRecord)
                .where(
                    MediaNodeRecord.owner_id == node.id,
                    MediaNodeRecord.kind == ItemKind.TRAILER.value,
                )
                .order_by(MediaNodeRecord.name, MediaNodeRecord.date_created)
            )
            records = (await session.execute(stmt)).scalars().all()
        return [node_from_record(record) for record in records]

    async def get_intros(self, node: MediaNode, user: User) -> list[MediaNode]:
        """Return the newest unplayed library trailers to play before ``node``."""

        if node.kind not in INTRO_TARGET_KINDS or self._intro_limit <= 0:
            return []

        async with self._session_factory() as session:
            stmt = (
                select(MediaNodeRecord)
                .outerjoin(
                    UserItemDataRecord,
                    and_(
                        UserItemDataRecord.item_id == MediaNodeRecord.id,
                        UserItemDataRecord.user_id == user.id,
                    ),
                )
                .where(
                    MediaNodeRecord.kind == ItemKind.TRAILER.value,
                    MediaNodeRecord.owner_id.is_(None),
                    MediaNodeRecord.id != node.id,
                    or_(
                        UserItemDataRecord.played.is_(None),
                        UserItemDataRecord.played.is_(False),
                    ),
                )
                .order_by(MediaNodeRecord.date_created.desc())
            )
            records = (await session.execute(stmt)).scalars().all()

        intros: list[MediaNode] = []
        for record in records:
            candidate = node_from_record(record)
            if not self._access_policy.can_access(user, candidate):
                continue
            intros.append(candidate)
            if len(intros) >= self._intro_limit:
                break
        return intros

    async def mark_refreshed(self, item_id: uuid.UUID, refreshed_at: datetime) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(MediaNodeRecord)
                .where(MediaNodeRecord.id == item_id)
                .values(last_refreshed_at=refreshed_at)
            )
            await session.commit()

    async def query_latest(self, query: LatestItemsQuery) -> list[GroupedCandidate]:
        """Return recently added items grouped under their display container.

        Items are scanned newest first. With ``group_items`` set, items that
        share a container (series for episodes, album for tracks, folder for
        photos) are collected into one candidate. Scanning stops once
        ``limit`` candidates exist.
        """

        async with self._session_factory() as session:
            scope_ids: set[uuid.UUID] | None = None
            if query.parent_id is not None:
                parent = await session.get(MediaNodeRecord, query.parent_id)
                if parent is None:
                    return []
                if parent.kind != ItemKind.ROOT_FOLDER.value:
                    scope_ids = await self._descendant_ids(session, parent.id)

            stmt = self._latest_statement(query)
            records = (await session.execute(stmt)).scalars().all()

            node_cache: dict[uuid.UUID, MediaNode] = {}
            groups: list[tuple[MediaNode | None, list[MediaNode]]] = []
            positions: dict[uuid.UUID, int] = {}
            for record in records:
                if scope_ids is not None and record.id not in scope_ids:
                    continue
                node = node_from_record(record)
                if not self._access_policy.can_access(query.user, node):
                    continue

                container = None
                if query.group_items:
                    container = await self._latest_container(session, node, node_cache)

                if container is not None and container.id in positions:
                    groups[positions[container.id]][1].append(node)
                    continue
                if container is not None:
                    positions[container.id] = len(groups)
                groups.append((container, [node]))
                if len(groups) >= query.limit:
                    break

        return [
            GroupedCandidate(container=container, members=tuple(members))
            for container, members in groups
        ]

    @staticmethod
    def _latest_statement(query: LatestItemsQuery):
        stmt = select(MediaNodeRecord).where(
            MediaNodeRecord.owner_id.is_(None),
            MediaNodeRecord.kind.not_in([kind.value for kind in _NON_LATEST_KINDS]),
        )
        if query.include_item_types:
            stmt = stmt.where(
                MediaNodeRecord.kind.in_(
                    [kind.value for kind in query.include_item_types]
                )
            )
        if query.is_played is not None:
            stmt = stmt.outerjoin(
                UserItemDataRecord,
                and_(
                    UserItemDataRecord.item_id == MediaNodeRecord.id,
                    UserItemDataRecord.user_id == query.user.id,
                ),
            )
            if query.is_played:
                stmt = stmt.where(UserItemDataRecord.played.is_(True))
            else:
                stmt = stmt.where(
                    or_(
                        UserItemDataRecord.played.is_(None),
                        UserItemDataRecord.played.is_(False),
                    )
                )
        return stmt.order_by(
            MediaNodeRecord.date_created.desc(), MediaNodeRecord.name
        )

    async def _latest_container(
        self,
        session: AsyncSession,
        node: MediaNode,
        cache: dict[uuid.UUID, MediaNode],
    ) -> MediaNode | None:
        if node.kind is ItemKind.EPISODE:
            for ancestor in await self._ancestors(session, node, cache):
                if ancestor.kind is ItemKind.SERIES:
                    return ancestor
            return None
        if node.kind is ItemKind.AUDIO:
            parent = await self._cached_node(session, node.parent_id, cache)
            if parent is not None and parent.kind is ItemKind.MUSIC_ALBUM:
                return parent
            return None
        if node.kind is ItemKind.PHOTO:
            parent = await self._cached_node(session, node.parent_id, cache)
            if parent is not None and parent.kind in (
                ItemKind.PHOTO_ALBUM,
                ItemKind.FOLDER,
            ):
                return parent
        return None

    async def _ancestors(
        self,
        session: AsyncSession,
        node: MediaNode,
        cache: dict[uuid.UUID, MediaNode],
    ) -> list[MediaNode]:
        ancestors: list[MediaNode] = []
        seen: set[uuid.UUID] = {node.id}
        current = await self._cached_node(session, node.parent_id, cache)
        while current is not None and current.id not in seen:
            ancestors.append(current)
            seen.add(current.id)
            current = await self._cached_node(session, current.parent_id, cache)
        return ancestors

    @staticmethod
    async def _cached_node(
        session: AsyncSession,
        item_id: uuid.UUID | None,
        cache: dict[uuid.UUID, MediaNode],
    ) -> MediaNode | None:
        if item_id is None:
            return None
        if item_id in cache:
            return cache[item_id]
        record = await session.get(MediaNodeRecord, item_id)
        if record is None:
            return None
        node = node_from_record(record)
        cache[item_id] = node
        return node

    @staticmethod
    async def _descendant_ids(
        session: AsyncSession, parent_id: uuid.UUID
    ) -> set[uuid.UUID]:
        descendants: set[uuid.UUID] = set()
        frontier: Sequence[uuid.UUID] = [parent_id]
        while frontier:
            stmt = select(MediaNodeRecord.id).where(
                MediaNodeRecord.parent_id.in_(frontier)
            )
            children = [
                child_id
                for child_id in (await session.execute(stmt)).scalars().all()
                if child_id not in descendants
            ]
            descendants.update(children)
            frontier = children
        return descendants
