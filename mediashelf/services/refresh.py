"""On-demand metadata refresh for stub Person entries."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Protocol

import httpx

from ..exceptions import RefreshFailure
from ..models import MediaNode, RefreshMode, is_person
from ..utils import is_blank

logger = logging.getLogger(__name__)

DEFAULT_FULL_REFRESH_INTERVAL = timedelta(days=3)


@dataclass(frozen=True, slots=True)
class RefreshOptions:
    """Modes requested from the metadata refresher."""

    metadata_mode: RefreshMode = RefreshMode.DEFAULT
    image_mode: RefreshMode = RefreshMode.DEFAULT
    force_save: bool = False
    replace_all_metadata: bool = False
    replace_all_images: bool = False


class MetadataRefresher(Protocol):
    """Runs the metadata pipeline for a node and waits for completion."""

    async def refresh(self, node: MediaNode, options: RefreshOptions) -> None: ...


class OnDemandRefreshPolicy:
    """Refresh Person nodes lacking an overview or primary image."""

    def __init__(
        self,
        refresher: MetadataRefresher,
        *,
        full_refresh_interval: timedelta = DEFAULT_FULL_REFRESH_INTERVAL,
        now: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._refresher = refresher
        self._full_refresh_interval = full_refresh_interval
        self._now = now

    @staticmethod
    def has_metadata(node: MediaNode) -> bool:
        return not is_blank(node.overview) and node.has_primary_image

    def build_options(self, node: MediaNode) -> RefreshOptions:
        """Return full-refresh options, forcing a save once the node has aged."""

        age = self._now() - node.last_refreshed_at
        return RefreshOptions(
            metadata_mode=RefreshMode.FULL_REFRESH,
            image_mode=RefreshMode.FULL_REFRESH,
            force_save=age >= self._full_refresh_interval,
        )

    async def refresh_if_needed(self, node: MediaNode) -> bool:
        """Synchronously refresh ``node`` when it is a stale Person.

        Returns ``True`` when a refresh was issued. Failures of the refresher
        are raised as :class:`RefreshFailure`.
        """

        if not is_person(node) or self.has_metadata(node):
            return False

        options = self.build_options(node)
        logger.info(
            "Refreshing person %s (%s) on demand, force_save=%s",
            node.name,
            node.id,
            options.force_save,
        )
        try:
            await self._refresher.refresh(node, options)
        except Exception as exc:
            raise RefreshFailure(
                f"Metadata refresh failed for {node.name} ({node.id})"
            ) from exc
        return True


class HttpMetadataRefresher:
    """Ask a remote metadata service to refresh a node."""

    _REFRESH_PATH = "/Items/{item_id}/Refresh"

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._client = http_client

    async def refresh(self, node: MediaNode, options: RefreshOptions) -> None:
        path = self._REFRESH_PATH.format(item_id=node.id.hex)
        params = {
            "metadataRefreshMode": options.metadata_mode.value,
            "imageRefreshMode": options.image_mode.value,
            "replaceAllMetadata": _flag(options.replace_all_metadata),
            "replaceAllImages": _flag(options.replace_all_images),
            "forceSave": _flag(options.force_save),
        }
        try:
            response = await self._client.post(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Metadata refresh request failed for %s: %s", node.id, exc)
            raise


class RefreshableCatalog(Protocol):
    async def mark_refreshed(
        self, item_id: uuid.UUID, refreshed_at: datetime
    ) -> None: ...


class CatalogRefresher:
    """Record refreshes directly in the catalog when no service is configured."""

    def __init__(
        self,
        catalog: RefreshableCatalog,
        *,
        now: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._catalog = catalog
        self._now = now

    async def refresh(self, node: MediaNode, options: RefreshOptions) -> None:
        if not options.force_save:
            logger.info(
                "No metadata refresh service configured; %s (%s) left unchanged",
                node.name,
                node.id,
            )
            return
        logger.info(
            "No metadata refresh service configured; only stamping %s (%s)",
            node.name,
            node.id,
        )
        await self._catalog.mark_refreshed(node.id, self._now())


def _flag(value: bool) -> str:
    return "true" if value else "false"
