"""Utility helpers for the Mediashelf service."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Iterable, TypeVar

from .models import EMPTY_ID

E = TypeVar("E", bound=Enum)


def is_blank(value: str | None) -> bool:
    """Return whether the value is ``None``, empty or whitespace only."""

    return value is None or not value.strip()


def is_empty_id(value: uuid.UUID | None) -> bool:
    return value is None or value == EMPTY_ID


def split_delimited(values: Iterable[str] | str | None) -> list[str]:
    """Flatten comma delimited query values into trimmed, non-empty parts."""

    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    parts: list[str] = []
    for value in values:
        for part in str(value).split(","):
            stripped = part.strip()
            if stripped:
                parts.append(stripped)
    return parts


def parse_enum_list(
    enum_type: type[E], values: Iterable[str] | str | None
) -> tuple[E, ...]:
    """Parse delimited values into enum members, matching case-insensitively."""

    lookup = {member.value.lower(): member for member in enum_type}
    parsed: list[E] = []
    for entry in split_delimited(values):
        member = lookup.get(entry.lower())
        if member is None:
            raise ValueError(f"Unknown {enum_type.__name__} value: {entry}")
        if member not in parsed:
            parsed.append(member)
    return tuple(parsed)
