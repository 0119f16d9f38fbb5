"""High level orchestration of per-user library lookups."""

from __future__ import annotations

import logging
import uuid

from ..exceptions import NotFound
from ..models import (
    DISPLAY_EXTRA_TYPES,
    ExtraType,
    ItemKind,
    ItemView,
    LatestItemsQuery,
    MediaNode,
    ProjectionOptions,
    QueryResult,
    User,
    UserItemDataView,
    supports_local_trailers,
)
from ..utils import is_empty_id
from .catalog import Catalog, UserDirectory
from .latest import LatestItemsAggregator
from .personalization import PersonalizationService
from .projection import ItemProjector
from .refresh import OnDemandRefreshPolicy
from .visibility import VisibilityGate

logger = logging.getLogger(__name__)


class UserLibraryService:
    """Coordinates lookup, authorization, refresh and personalization.

    Every operation resolves the user and the target node, checks visibility
    and only then does its own work, so nothing is refreshed or written for
    an item the caller cannot see.
    """

    def __init__(
        self,
        users: UserDirectory,
        catalog: Catalog,
        gate: VisibilityGate,
        refresh_policy: OnDemandRefreshPolicy,
        personalization: PersonalizationService,
        projector: ItemProjector,
        *,
        default_latest_limit: int = 20,
    ) -> None:
        self._users = users
        self._catalog = catalog
        self._gate = gate
        self._refresh_policy = refresh_policy
        self._personalization = personalization
        self._projector = projector
        self._latest = LatestItemsAggregator(catalog, projector)
        self._default_latest_limit = default_latest_limit

    async def get_item(
        self, user_id: uuid.UUID, item_id: uuid.UUID, options: ProjectionOptions
    ) -> ItemView:
        user, node = await self._resolve_visible(user_id, item_id)
        if await self._refresh_policy.refresh_if_needed(node):
            node = await self._catalog.get_by_id(node.id) or node
        return await self._projector.to_view(node, options, user)

    async def get_root_folder(
        self, user_id: uuid.UUID, options: ProjectionOptions
    ) -> ItemView:
        user = await self._resolve_user(user_id)
        root = await self._catalog.get_root_folder()
        self._gate.ensure_visible(user, root)
        return await self._projector.to_view(root, options, user)

    async def get_intros(
        self, user_id: uuid.UUID, item_id: uuid.UUID, options: ProjectionOptions
    ) -> QueryResult:
        user, node = await self._resolve_visible(user_id, item_id)
        intros = await self._catalog.get_intros(node, user)
        return QueryResult.of(await self._projector.to_views(intros, options, user))

    async def mark_favorite(
        self, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> UserItemDataView:
        user, node = await self._resolve_visible(user_id, item_id)
        return await self._personalization.set_favorite(user, node, True)

    async def unmark_favorite(
        self, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> UserItemDataView:
        user, node = await self._resolve_visible(user_id, item_id)
        return await self._personalization.set_favorite(user, node, False)

    async def delete_rating(
        self, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> UserItemDataView:
        user, node = await self._resolve_visible(user_id, item_id)
        return await self._personalization.set_rating(user, node, None)

    async def update_rating(
        self, user_id: uuid.UUID, item_id: uuid.UUID, likes: bool | None
    ) -> UserItemDataView:
        user, node = await self._resolve_visible(user_id, item_id)
        return await self._personalization.set_rating(user, node, likes)

    async def get_user_data(
        self, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> UserItemDataView:
        user, node = await self._resolve_visible(user_id, item_id)
        return await self._personalization.get_view(user, node)

    async def get_local_trailers(
        self, user_id: uuid.UUID, item_id: uuid.UUID, options: ProjectionOptions
    ) -> list[ItemView]:
        user, node = await self._resolve_visible(user_id, item_id)
        if supports_local_trailers(node):
            trailers = await self._catalog.get_local_trailers(node)
        else:
            trailers = [
                extra
                for extra in await self._catalog.get_extras(node)
                if extra.extra_type is ExtraType.TRAILER
            ]
        return await self._projector.to_views(trailers, options, user, owner=node)

    async def get_special_features(
        self, user_id: uuid.UUID, item_id: uuid.UUID, options: ProjectionOptions
    ) -> list[ItemView]:
        user, node = await self._resolve_visible(user_id, item_id)
        features = [
            extra
            for extra in await self._catalog.get_extras(node)
            if extra.extra_type is not None and extra.extra_type in DISPLAY_EXTRA_TYPES
        ]
        return await self._projector.to_views(features, options, user, owner=node)

    async def get_latest_media(
        self,
        user_id: uuid.UUID,
        options: ProjectionOptions,
        *,
        parent_id: uuid.UUID | None = None,
        include_item_types: tuple[ItemKind, ...] = (),
        is_played: bool | None = None,
        limit: int | None = None,
        group_items: bool = True,
    ) -> list[ItemView]:
        user = await self._resolve_user(user_id)
        query = LatestItemsQuery(
            user=user,
            parent_id=parent_id,
            include_item_types=include_item_types,
            is_played=is_played,
            limit=limit if limit is not None else self._default_latest_limit,
            group_items=group_items,
        )
        return await self._latest.get_latest(query, options)

    async def _resolve_user(self, user_id: uuid.UUID) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    async def _resolve_node(self, item_id: uuid.UUID) -> MediaNode:
        if is_empty_id(item_id):
            return await self._catalog.get_root_folder()
        node = await self._catalog.get_by_id(item_id)
        if node is None:
            raise NotFound(f"Item {item_id} not found")
        return node

    async def _resolve_visible(
        self, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> tuple[User, MediaNode]:
        user = await self._resolve_user(user_id)
        node = await self._resolve_node(item_id)
        self._gate.ensure_visible(user, node)
        return user, node
