"""Error outcomes raised by the user library service."""

from __future__ import annotations


class MediashelfError(Exception):
    """Base class for failures surfaced to API callers."""


class NotFound(MediashelfError, KeyError):
    """The requested user or item does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; callers want the plain message.
        return str(self.args[0]) if self.args else ""


class Unauthorized(MediashelfError, PermissionError):
    """The item exists but is not visible to the requesting user."""


class RefreshFailure(MediashelfError, RuntimeError):
    """The metadata refresh triggered during a lookup did not complete."""
