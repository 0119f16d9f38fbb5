"""Projection of catalog nodes into client-facing item views."""

from __future__ import annotations

from typing import Protocol

from ..models import (
    ItemField,
    ItemView,
    MediaNode,
    ProjectionOptions,
    User,
    is_folder,
)
from .personalization import PersonalizationStorage


class Projector(Protocol):
    async def to_view(
        self,
        node: MediaNode,
        options: ProjectionOptions,
        user: User,
        owner: MediaNode | None = None,
    ) -> ItemView: ...


class ItemProjector:
    """Build :class:`ItemView` objects honouring the requested options."""

    def __init__(self, user_data: PersonalizationStorage) -> None:
        self._user_data = user_data

    async def to_view(
        self,
        node: MediaNode,
        options: ProjectionOptions,
        user: User,
        owner: MediaNode | None = None,
    ) -> ItemView:
        view = ItemView(
            id=node.id,
            name=node.name,
            type=node.kind,
            is_folder=is_folder(node),
            extra_type=node.extra_type,
        )
        if owner is not None:
            view.owner_id = owner.id
        elif node.owner_id is not None:
            view.owner_id = node.owner_id

        fields = options.fields
        if ItemField.OVERVIEW in fields:
            view.overview = node.overview
        if ItemField.PARENT_ID in fields:
            view.parent_id = node.parent_id if owner is None else owner.id
        if ItemField.DATE_CREATED in fields:
            view.date_created = node.date_created
        if ItemField.DATE_LAST_REFRESHED in fields:
            view.date_last_refreshed = node.last_refreshed_at

        if options.enable_images:
            view.image_tags = self._select_image_tags(node, options)
        if options.enable_user_data:
            view.user_data = await self._user_data.get_view(user, node)
        return view

    async def to_views(
        self,
        nodes: list[MediaNode],
        options: ProjectionOptions,
        user: User,
        owner: MediaNode | None = None,
    ) -> list[ItemView]:
        return [await self.to_view(node, options, user, owner) for node in nodes]

    @staticmethod
    def _select_image_tags(
        node: MediaNode, options: ProjectionOptions
    ) -> dict[str, str]:
        tags = dict(node.image_tags)
        if options.enable_image_types:
            allowed = {value.lower() for value in options.enable_image_types}
            tags = {key: value for key, value in tags.items() if key.lower() in allowed}
        # One tag per image type, so the per-type limit only matters at zero.
        if options.image_type_limit == 0:
            tags = {}
        return tags
