import uuid

import pytest

from mediashelf.models import EMPTY_ID, ItemKind
from mediashelf.utils import is_blank, is_empty_id, parse_enum_list, split_delimited


def test_split_delimited_flattens_repeated_and_comma_values() -> None:
    assert split_delimited(["Overview, DateCreated", " ", "ParentId,"]) == [
        "Overview",
        "DateCreated",
        "ParentId",
    ]
    assert split_delimited("Primary") == ["Primary"]
    assert split_delimited(None) == []


def test_parse_enum_list_is_case_insensitive_and_deduplicates() -> None:
    parsed = parse_enum_list(ItemKind, "episode,Audio,EPISODE")

    assert parsed == (ItemKind.EPISODE, ItemKind.AUDIO)


def test_parse_enum_list_rejects_unknown_values() -> None:
    with pytest.raises(ValueError, match="Unknown ItemKind value: Spaceship"):
        parse_enum_list(ItemKind, ["Movie", "Spaceship"])


def test_blank_and_empty_id_helpers() -> None:
    assert is_blank(None)
    assert is_blank("   ")
    assert not is_blank("x")
    assert is_empty_id(None)
    assert is_empty_id(EMPTY_ID)
    assert not is_empty_id(uuid.uuid4())
