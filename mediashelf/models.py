"""Domain types and projected views for the user library."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMPTY_ID = uuid.UUID(int=0)


class ItemKind(str, Enum):
    """Kind tag carried by every catalog node."""

    ROOT_FOLDER = "RootFolder"
    COLLECTION_FOLDER = "CollectionFolder"
    FOLDER = "Folder"
    PERSON = "Person"
    MOVIE = "Movie"
    SERIES = "Series"
    SEASON = "Season"
    EPISODE = "Episode"
    MUSIC_ALBUM = "MusicAlbum"
    AUDIO = "Audio"
    PHOTO_ALBUM = "PhotoAlbum"
    PHOTO = "Photo"
    TRAILER = "Trailer"
    VIDEO = "Video"


FOLDER_KINDS: frozenset[ItemKind] = frozenset(
    {
        ItemKind.ROOT_FOLDER,
        ItemKind.COLLECTION_FOLDER,
        ItemKind.FOLDER,
        ItemKind.SERIES,
        ItemKind.SEASON,
        ItemKind.MUSIC_ALBUM,
        ItemKind.PHOTO_ALBUM,
    }
)

# Kinds whose trailers are attached directly to the node rather than being
# discovered among its generic extras.
LOCAL_TRAILER_KINDS: frozenset[ItemKind] = frozenset(
    {
        ItemKind.MOVIE,
        ItemKind.SERIES,
        ItemKind.SEASON,
        ItemKind.EPISODE,
        ItemKind.MUSIC_ALBUM,
        ItemKind.VIDEO,
    }
)


class ExtraType(str, Enum):
    """Classification of extras attached to an owning node."""

    UNKNOWN = "Unknown"
    CLIP = "Clip"
    TRAILER = "Trailer"
    BEHIND_THE_SCENES = "BehindTheScenes"
    DELETED_SCENE = "DeletedScene"
    INTERVIEW = "Interview"
    SCENE = "Scene"
    SAMPLE = "Sample"
    THEME_SONG = "ThemeSong"
    THEME_VIDEO = "ThemeVideo"
    FEATURETTE = "Featurette"
    SHORT = "Short"


DISPLAY_EXTRA_TYPES: frozenset[ExtraType] = frozenset(ExtraType) - {
    ExtraType.TRAILER,
    ExtraType.THEME_SONG,
    ExtraType.THEME_VIDEO,
}


class ItemField(str, Enum):
    """Optional fields a client may request on projected items."""

    OVERVIEW = "Overview"
    DATE_CREATED = "DateCreated"
    PARENT_ID = "ParentId"
    DATE_LAST_REFRESHED = "DateLastRefreshed"


class RefreshMode(str, Enum):
    NONE = "None"
    VALIDATION_ONLY = "ValidationOnly"
    DEFAULT = "Default"
    FULL_REFRESH = "FullRefresh"


class UserDataSaveReason(str, Enum):
    """Tag recorded with every personalization save."""

    PLAYBACK_START = "PlaybackStart"
    PLAYBACK_PROGRESS = "PlaybackProgress"
    PLAYBACK_FINISHED = "PlaybackFinished"
    TOGGLE_PLAYED = "TogglePlayed"
    UPDATE_USER_RATING = "UpdateUserRating"
    IMPORT = "Import"


@dataclass(frozen=True, slots=True)
class User:
    """Identity and library preferences of an account."""

    id: uuid.UUID
    name: str
    hide_played_in_latest: bool = True
    is_administrator: bool = False
    enable_all_folders: bool = True
    enabled_folders: frozenset[uuid.UUID] = frozenset()
    max_parental_rating: int | None = None


@dataclass(frozen=True, slots=True)
class MediaNode:
    """Read-only snapshot of a catalog entry."""

    id: uuid.UUID
    kind: ItemKind
    name: str
    last_refreshed_at: datetime
    overview: str | None = None
    has_primary_image: bool = False
    parent_id: uuid.UUID | None = None
    owner_id: uuid.UUID | None = None
    extra_type: ExtraType | None = None
    library_id: uuid.UUID | None = None
    parental_rating: int | None = None
    date_created: datetime = field(default_factory=datetime.utcnow)
    image_tags: dict[str, str] = field(default_factory=dict)


def is_root_folder(node: MediaNode) -> bool:
    return node.kind is ItemKind.ROOT_FOLDER


def is_person(node: MediaNode) -> bool:
    return node.kind is ItemKind.PERSON


def is_music_album(node: MediaNode) -> bool:
    return node.kind is ItemKind.MUSIC_ALBUM


def is_folder(node: MediaNode) -> bool:
    return node.kind in FOLDER_KINDS


def supports_local_trailers(node: MediaNode) -> bool:
    """Return whether trailers hang directly off this kind of node."""

    return node.kind in LOCAL_TRAILER_KINDS


@dataclass(slots=True)
class PersonalizationRecord:
    """Favorite and rating state of one user for one node."""

    is_favorite: bool = False
    likes: bool | None = None
    played: bool = False
    play_count: int = 0


@dataclass(frozen=True, slots=True)
class GroupedCandidate:
    """Sibling nodes the catalog proposes to collapse into one entry."""

    container: MediaNode | None
    members: tuple[MediaNode, ...]

    def __post_init__(self) -> None:
        if not self.members:
            raise ValueError("A grouped candidate needs at least one member")


class LatestItemsQuery(BaseModel):
    """Parameters of a latest-items request for a single user."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    user: User
    parent_id: uuid.UUID | None = None
    include_item_types: tuple[ItemKind, ...] = ()
    is_played: bool | None = None
    limit: int = Field(default=20, ge=1)
    group_items: bool = True

    @field_validator("parent_id", mode="before")
    @classmethod
    def _empty_parent_is_library(cls, value: object) -> object:
        if value == EMPTY_ID or value == "":
            return None
        return value


class ProjectionOptions(BaseModel):
    """Client-selected options controlling item projection."""

    model_config = ConfigDict(frozen=True)

    fields: frozenset[ItemField] = frozenset()
    enable_images: bool = True
    enable_user_data: bool = True
    image_type_limit: int | None = Field(default=None, ge=0)
    enable_image_types: tuple[str, ...] = ()


class UserItemDataView(BaseModel):
    """Projected personalization state returned to clients."""

    model_config = ConfigDict(populate_by_name=True)

    is_favorite: bool = Field(default=False, serialization_alias="IsFavorite")
    likes: bool | None = Field(default=None, serialization_alias="Likes")
    played: bool = Field(default=False, serialization_alias="Played")
    play_count: int = Field(default=0, serialization_alias="PlayCount")
    key: str = Field(serialization_alias="Key")
    item_id: uuid.UUID = Field(serialization_alias="ItemId")

    @classmethod
    def from_record(
        cls, node: MediaNode, record: PersonalizationRecord
    ) -> "UserItemDataView":
        return cls(
            is_favorite=record.is_favorite,
            likes=record.likes,
            played=record.played,
            play_count=record.play_count,
            key=node.id.hex,
            item_id=node.id,
        )


class ItemView(BaseModel):
    """Externally visible representation of a catalog node."""

    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID = Field(serialization_alias="Id")
    name: str = Field(serialization_alias="Name")
    type: ItemKind = Field(serialization_alias="Type")
    is_folder: bool = Field(default=False, serialization_alias="IsFolder")
    parent_id: uuid.UUID | None = Field(default=None, serialization_alias="ParentId")
    owner_id: uuid.UUID | None = Field(default=None, serialization_alias="OwnerId")
    overview: str | None = Field(default=None, serialization_alias="Overview")
    date_created: datetime | None = Field(
        default=None, serialization_alias="DateCreated"
    )
    date_last_refreshed: datetime | None = Field(
        default=None, serialization_alias="DateLastRefreshed"
    )
    extra_type: ExtraType | None = Field(default=None, serialization_alias="ExtraType")
    image_tags: dict[str, str] | None = Field(
        default=None, serialization_alias="ImageTags"
    )
    child_count: int | None = Field(default=None, serialization_alias="ChildCount")
    user_data: UserItemDataView | None = Field(
        default=None, serialization_alias="UserData"
    )

    def to_payload(self) -> dict[str, object]:
        """Return the wire representation with unset optionals dropped."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QueryResult(BaseModel):
    """List envelope used by endpoints that return a counted result."""

    items: list[ItemView] = Field(default_factory=list)
    total_record_count: int = 0
    start_index: int = 0

    @classmethod
    def of(cls, items: list[ItemView]) -> "QueryResult":
        return cls(items=items, total_record_count=len(items))

    def to_payload(self) -> dict[str, object]:
        return {
            "Items": [item.to_payload() for item in self.items],
            "TotalRecordCount": self.total_record_count,
            "StartIndex": self.start_index,
        }
