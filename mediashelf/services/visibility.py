"""Access checks deciding whether a user may see a catalog node."""

from __future__ import annotations

import logging
from typing import Protocol

from ..exceptions import Unauthorized
from ..models import MediaNode, User, is_root_folder

logger = logging.getLogger(__name__)


class AccessPolicy(Protocol):
    """Per-node access rules such as library grants and parental limits."""

    def can_access(self, user: User, node: MediaNode) -> bool: ...


class LibraryAccessPolicy:
    """Grant access by library folder and maximum parental rating."""

    def can_access(self, user: User, node: MediaNode) -> bool:
        if user.is_administrator:
            return True
        if not user.enable_all_folders:
            if node.library_id is None or node.library_id not in user.enabled_folders:
                return False
        if user.max_parental_rating is not None and node.parental_rating is not None:
            if node.parental_rating > user.max_parental_rating:
                return False
        return True


class VisibilityGate:
    """Enforce the visibility outcome of an access policy."""

    def __init__(self, policy: AccessPolicy | None = None) -> None:
        self._policy = policy or LibraryAccessPolicy()

    def is_visible(self, user: User, node: MediaNode) -> bool:
        if is_root_folder(node):
            return True
        return self._policy.can_access(user, node)

    def ensure_visible(self, user: User, node: MediaNode) -> None:
        """Raise :class:`Unauthorized` unless ``node`` is visible to ``user``."""

        if self.is_visible(user, node):
            return
        logger.info("Denied %s access to item %s (%s)", user.name, node.name, node.id)
        raise Unauthorized(
            f"{user.name} is not permitted to access item {node.name}."
        )
