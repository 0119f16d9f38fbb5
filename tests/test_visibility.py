"""Visibility gate and library access policy tests."""

from __future__ import annotations

import uuid
from datetime import datetime

import pytest

from mediashelf.exceptions import Unauthorized
from mediashelf.models import ItemKind, MediaNode, User
from mediashelf.services.visibility import LibraryAccessPolicy, VisibilityGate

MOVIES_LIBRARY = uuid.uuid4()
MUSIC_LIBRARY = uuid.uuid4()


class DenyAllPolicy:
    def __init__(self) -> None:
        self.calls = 0

    def can_access(self, user: User, node: MediaNode) -> bool:
        self.calls += 1
        return False


def _node(kind: ItemKind, name: str = "Node", **overrides) -> MediaNode:
    return MediaNode(
        id=uuid.uuid4(),
        kind=kind,
        name=name,
        last_refreshed_at=datetime(2024, 1, 1),
        **overrides,
    )


def test_root_folder_is_visible_whatever_the_policy_says() -> None:
    policy = DenyAllPolicy()
    gate = VisibilityGate(policy)
    user = User(id=uuid.uuid4(), name="kid", is_administrator=False)

    assert gate.is_visible(user, _node(ItemKind.ROOT_FOLDER)) is True
    assert policy.calls == 0


def test_other_kinds_follow_the_policy() -> None:
    gate = VisibilityGate(DenyAllPolicy())
    user = User(id=uuid.uuid4(), name="kid")

    assert gate.is_visible(user, _node(ItemKind.FOLDER)) is False
    assert gate.is_visible(user, _node(ItemKind.PERSON)) is False


def test_ensure_visible_names_user_and_item() -> None:
    gate = VisibilityGate(DenyAllPolicy())
    user = User(id=uuid.uuid4(), name="kid")

    with pytest.raises(Unauthorized) as excinfo:
        gate.ensure_visible(user, _node(ItemKind.MOVIE, "Alien"))

    assert str(excinfo.value) == "kid is not permitted to access item Alien."


def test_library_grants_limit_visible_folders() -> None:
    policy = LibraryAccessPolicy()
    user = User(
        id=uuid.uuid4(),
        name="guest",
        enable_all_folders=False,
        enabled_folders=frozenset({MUSIC_LIBRARY}),
    )

    assert policy.can_access(user, _node(ItemKind.AUDIO, library_id=MUSIC_LIBRARY))
    assert not policy.can_access(user, _node(ItemKind.MOVIE, library_id=MOVIES_LIBRARY))
    assert not policy.can_access(user, _node(ItemKind.MOVIE))


def test_parental_rating_hides_higher_rated_items() -> None:
    policy = LibraryAccessPolicy()
    user = User(id=uuid.uuid4(), name="kid", max_parental_rating=10)

    assert policy.can_access(user, _node(ItemKind.MOVIE, parental_rating=7))
    assert policy.can_access(user, _node(ItemKind.MOVIE))
    assert not policy.can_access(user, _node(ItemKind.MOVIE, parental_rating=15))


def test_administrators_bypass_restrictions() -> None:
    policy = LibraryAccessPolicy()
    admin = User(
        id=uuid.uuid4(),
        name="admin",
        is_administrator=True,
        enable_all_folders=False,
        max_parental_rating=0,
    )

    assert policy.can_access(
        admin, _node(ItemKind.MOVIE, parental_rating=18, library_id=MOVIES_LIBRARY)
    )
