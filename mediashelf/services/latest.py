"""Recently added items collapsed into one entry per group."""

from __future__ import annotations

import logging
from typing import Sequence

from ..models import (
    GroupedCandidate,
    ItemView,
    LatestItemsQuery,
    MediaNode,
    ProjectionOptions,
    is_music_album,
)
from .catalog import Catalog
from .projection import Projector

logger = logging.getLogger(__name__)


def effective_played_filter(query: LatestItemsQuery) -> bool | None:
    """Return the played filter to apply, defaulting from the user preference.

    An explicit filter on the query always wins. Otherwise users who hide
    played items in latest get "unplayed only".
    """

    if query.is_played is not None:
        return query.is_played
    if query.user.hide_played_in_latest:
        return False
    return None


def select_representative(candidate: GroupedCandidate) -> tuple[MediaNode, int]:
    """Pick the node shown for a candidate along with its child count.

    The container stands in for the group when it collapses several members
    or when it is a music album. A lone member of any other container is
    shown on its own with no child count.
    """

    container = candidate.container
    members = candidate.members
    if container is not None and (len(members) > 1 or is_music_album(container)):
        return container, len(members)
    return members[0], 0


def select_representatives(
    candidates: Sequence[GroupedCandidate],
) -> list[tuple[MediaNode, int]]:
    return [select_representative(candidate) for candidate in candidates]


class LatestItemsAggregator:
    """Query grouped candidates and project one view per group."""

    def __init__(self, catalog: Catalog, projector: Projector) -> None:
        self._catalog = catalog
        self._projector = projector

    async def get_latest(
        self, query: LatestItemsQuery, options: ProjectionOptions
    ) -> list[ItemView]:
        played = effective_played_filter(query)
        if played != query.is_played:
            query = query.model_copy(update={"is_played": played})

        candidates = await self._catalog.query_latest(query)
        logger.debug(
            "Latest items for %s returned %d groups", query.user.id, len(candidates)
        )

        views: list[ItemView] = []
        for node, child_count in select_representatives(candidates):
            view = await self._projector.to_view(node, options, query.user)
            view.child_count = child_count
            views.append(view)
        return views
