"""Latest-items grouping and representative selection."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime

import pytest

from mediashelf.models import (
    GroupedCandidate,
    ItemKind,
    ItemView,
    LatestItemsQuery,
    MediaNode,
    ProjectionOptions,
    User,
)
from mediashelf.services.latest import (
    LatestItemsAggregator,
    effective_played_filter,
    select_representative,
)


def _node(kind: ItemKind, name: str) -> MediaNode:
    return MediaNode(
        id=uuid.uuid4(),
        kind=kind,
        name=name,
        last_refreshed_at=datetime(2024, 1, 1),
    )


class StubCatalog:
    def __init__(self, candidates: list[GroupedCandidate]) -> None:
        self.candidates = candidates
        self.queries: list[LatestItemsQuery] = []

    async def query_latest(self, query: LatestItemsQuery) -> list[GroupedCandidate]:
        self.queries.append(query)
        return self.candidates


class StubProjector:
    async def to_view(self, node, options, user, owner=None) -> ItemView:
        # Projection knows nothing about grouping.
        return ItemView(id=node.id, name=node.name, type=node.kind, child_count=99)


def test_album_with_tracks_collapses_to_album() -> None:
    album = _node(ItemKind.MUSIC_ALBUM, "X")
    tracks = tuple(_node(ItemKind.AUDIO, f"Track {index}") for index in range(5))

    node, child_count = select_representative(GroupedCandidate(album, tracks))

    assert node is album
    assert child_count == 5


def test_album_with_single_track_still_uses_album() -> None:
    album = _node(ItemKind.MUSIC_ALBUM, "Single")
    track = _node(ItemKind.AUDIO, "Only Track")

    assert select_representative(GroupedCandidate(album, (track,))) == (album, 1)


def test_folder_with_single_member_shows_the_member() -> None:
    folder = _node(ItemKind.FOLDER, "Y")
    photo = _node(ItemKind.PHOTO, "Beach")

    assert select_representative(GroupedCandidate(folder, (photo,))) == (photo, 0)


def test_series_with_several_episodes_collapses_to_series() -> None:
    series = _node(ItemKind.SERIES, "Show")
    episodes = (_node(ItemKind.EPISODE, "E1"), _node(ItemKind.EPISODE, "E2"))

    assert select_representative(GroupedCandidate(series, episodes)) == (series, 2)


def test_ungrouped_member_is_its_own_representative() -> None:
    movie = _node(ItemKind.MOVIE, "Arrival")

    assert select_representative(GroupedCandidate(None, (movie,))) == (movie, 0)


def test_grouped_candidate_requires_members() -> None:
    with pytest.raises(ValueError):
        GroupedCandidate(_node(ItemKind.FOLDER, "Empty"), ())


@pytest.mark.parametrize(
    ("hide_played", "requested", "expected"),
    [
        (True, None, False),
        (False, None, None),
        (True, True, True),
        (False, False, False),
        (True, False, False),
    ],
)
def test_played_filter_defaults_from_preference(
    hide_played: bool, requested: bool | None, expected: bool | None
) -> None:
    user = User(id=uuid.uuid4(), name="alice", hide_played_in_latest=hide_played)
    query = LatestItemsQuery(user=user, is_played=requested)

    assert effective_played_filter(query) is expected


def test_aggregator_passes_effective_filter_downstream() -> None:
    user = User(id=uuid.uuid4(), name="alice", hide_played_in_latest=True)
    catalog = StubCatalog([])
    aggregator = LatestItemsAggregator(catalog, StubProjector())
    query = LatestItemsQuery(
        user=user,
        include_item_types=(ItemKind.EPISODE,),
        limit=5,
        group_items=False,
    )

    views = asyncio.run(aggregator.get_latest(query, ProjectionOptions()))

    assert views == []
    sent = catalog.queries[0]
    assert sent.is_played is False
    assert sent.limit == 5
    assert sent.group_items is False
    assert sent.include_item_types == (ItemKind.EPISODE,)


def test_aggregator_overwrites_child_counts_in_order() -> None:
    user = User(id=uuid.uuid4(), name="alice", hide_played_in_latest=False)
    album = _node(ItemKind.MUSIC_ALBUM, "X")
    tracks = tuple(_node(ItemKind.AUDIO, f"T{index}") for index in range(5))
    folder = _node(ItemKind.FOLDER, "Y")
    photo = _node(ItemKind.PHOTO, "Beach")
    movie = _node(ItemKind.MOVIE, "Arrival")
    catalog = StubCatalog(
        [
            GroupedCandidate(album, tracks),
            GroupedCandidate(folder, (photo,)),
            GroupedCandidate(None, (movie,)),
        ]
    )
    aggregator = LatestItemsAggregator(catalog, StubProjector())

    views = asyncio.run(
        aggregator.get_latest(LatestItemsQuery(user=user, limit=2), ProjectionOptions())
    )

    assert catalog.queries[0].is_played is None
    assert [(view.id, view.child_count) for view in views] == [
        (album.id, 5),
        (photo.id, 0),
        (movie.id, 0),
    ]
