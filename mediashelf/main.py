"""Entry point for the FastAPI-powered user library service."""

from __future__ import annotations

import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import timedelta
from typing import Any, Awaitable, TypeVar

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings, settings
from .database import Database
from .exceptions import NotFound, RefreshFailure, Unauthorized
from .models import ItemField, ItemKind, ProjectionOptions
from .services.catalog import SqlCatalog, SqlUserDirectory
from .services.library import UserLibraryService
from .services.personalization import PersonalizationService, SqlUserDataStore
from .services.projection import ItemProjector
from .services.refresh import (
    CatalogRefresher,
    HttpMetadataRefresher,
    MetadataRefresher,
    OnDemandRefreshPolicy,
)
from .services.visibility import LibraryAccessPolicy, VisibilityGate
from .utils import parse_enum_list, split_delimited

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

T = TypeVar("T")

app: FastAPI

_LIST_PARAMS = {"fields", "includeItemTypes", "enableImageTypes"}


class LatestMediaParams(BaseModel):
    """Normalized view of the query parameters accepted by the latest endpoint."""

    parent_id: uuid.UUID | None = Field(
        default=None, validation_alias=AliasChoices("parentId", "ParentId")
    )
    fields: frozenset[ItemField] = Field(default=frozenset())
    include_item_types: tuple[ItemKind, ...] = Field(
        default=(),
        validation_alias=AliasChoices("includeItemTypes", "IncludeItemTypes"),
    )
    is_played: bool | None = Field(
        default=None, validation_alias=AliasChoices("isPlayed", "IsPlayed")
    )
    enable_images: bool | None = Field(
        default=None, validation_alias=AliasChoices("enableImages", "EnableImages")
    )
    image_type_limit: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("imageTypeLimit", "ImageTypeLimit"),
    )
    enable_image_types: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("enableImageTypes", "EnableImageTypes"),
    )
    enable_user_data: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("enableUserData", "EnableUserData"),
    )
    limit: int | None = Field(
        default=None, ge=1, validation_alias=AliasChoices("limit", "Limit")
    )
    group_items: bool = Field(
        default=True, validation_alias=AliasChoices("groupItems", "GroupItems")
    )

    @classmethod
    def from_request(cls, request: Request) -> "LatestMediaParams":
        return cls.model_validate(_query_payload(request))

    @field_validator(
        "parent_id",
        "is_played",
        "enable_images",
        "image_type_limit",
        "enable_user_data",
        "limit",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("fields", mode="before")
    @classmethod
    def _parse_fields(cls, value: object) -> object:
        return frozenset(parse_enum_list(ItemField, value))  # type: ignore[arg-type]

    @field_validator("include_item_types", mode="before")
    @classmethod
    def _parse_item_types(cls, value: object) -> object:
        return parse_enum_list(ItemKind, value)  # type: ignore[arg-type]

    @field_validator("enable_image_types", mode="before")
    @classmethod
    def _parse_image_types(cls, value: object) -> object:
        return tuple(split_delimited(value))  # type: ignore[arg-type]

    def projection_options(self) -> ProjectionOptions:
        return ProjectionOptions(
            fields=self.fields,
            enable_images=True if self.enable_images is None else self.enable_images,
            enable_user_data=(
                True if self.enable_user_data is None else self.enable_user_data
            ),
            image_type_limit=self.image_type_limit,
            enable_image_types=self.enable_image_types,
        )


def _query_payload(request: Request) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        if key in _LIST_PARAMS:
            payload[key] = ",".join(values)
        else:
            payload[key] = values[-1]
    return payload


def projection_options_from_request(request: Request) -> ProjectionOptions:
    """Build projection options from the ``fields`` query parameter."""

    fields = request.query_params.getlist("fields")
    return ProjectionOptions(fields=frozenset(parse_enum_list(ItemField, fields)))


def build_library_service(
    app_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    refresh_client: httpx.AsyncClient | None = None,
) -> UserLibraryService:
    """Wire the SQL collaborators into a :class:`UserLibraryService`."""

    access_policy = LibraryAccessPolicy()
    catalog = SqlCatalog(
        session_factory,
        access_policy=access_policy,
        intro_limit=app_settings.intro_limit,
    )
    user_data = SqlUserDataStore(session_factory)
    refresher: MetadataRefresher
    if refresh_client is not None:
        refresher = HttpMetadataRefresher(refresh_client)
    else:
        logger.warning(
            "METADATA_REFRESH_URL is not set; on-demand Person refresh will not "
            "fetch metadata"
        )
        refresher = CatalogRefresher(catalog)
    return UserLibraryService(
        SqlUserDirectory(session_factory),
        catalog,
        VisibilityGate(access_policy),
        OnDemandRefreshPolicy(
            refresher,
            full_refresh_interval=timedelta(days=app_settings.person_full_refresh_days),
        ),
        PersonalizationService(user_data),
        ItemProjector(user_data),
        default_latest_limit=app_settings.latest_items_limit,
    )


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    refresh_client: httpx.AsyncClient | None = None
    if settings.refresh_base_url:
        refresh_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=settings.refresh_base_url,
                timeout=httpx.Timeout(settings.metadata_refresh_timeout, connect=10.0),
            )
        )
    database = Database(settings.database_url)
    await database.create_all()

    fastapi_app.state.database = database
    fastapi_app.state.library_service = build_library_service(
        settings, database.session_factory, refresh_client
    )
    logger.info(
        "Library service ready (refresh via %s)",
        settings.refresh_base_url or "local catalog",
    )

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Per-user library lookups, favorites, ratings and latest media",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_library_service(app: FastAPI) -> UserLibraryService:
    service = getattr(app.state, "library_service", None)
    if not isinstance(service, UserLibraryService):
        raise RuntimeError("Library service not initialised")
    return service


async def _run(awaitable: Awaitable[T]) -> T:
    """Await a service call, translating its outcomes into HTTP errors."""

    try:
        return await awaitable
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Unauthorized as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except RefreshFailure as exc:
        logger.exception("Item lookup aborted: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    def _options(request: Request):
        try:
            return projection_options_from_request(request)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/Users/{userId}/Items/Root")
    async def get_root_folder(request: Request, userId: uuid.UUID) -> JSONResponse:
        service = get_library_service(fastapi_app)
        view = await _run(service.get_root_folder(userId, _options(request)))
        return JSONResponse(view.to_payload())

    @fastapi_app.get("/Users/{userId}/Items/Latest")
    async def get_latest_media(request: Request, userId: uuid.UUID) -> JSONResponse:
        service = get_library_service(fastapi_app)
        try:
            params = LatestMediaParams.from_request(request)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=exc.errors(include_url=False, include_context=False),
            ) from exc
        views = await _run(
            service.get_latest_media(
                userId,
                params.projection_options(),
                parent_id=params.parent_id,
                include_item_types=params.include_item_types,
                is_played=params.is_played,
                limit=params.limit,
                group_items=params.group_items,
            )
        )
        return JSONResponse([view.to_payload() for view in views])

    @fastapi_app.get("/Users/{userId}/Items/{itemId}")
    async def get_item(
        request: Request, userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        view = await _run(service.get_item(userId, itemId, _options(request)))
        return JSONResponse(view.to_payload())

    @fastapi_app.get("/Users/{userId}/Items/{itemId}/Intros")
    async def get_intros(
        request: Request, userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        result = await _run(service.get_intros(userId, itemId, _options(request)))
        return JSONResponse(result.to_payload())

    @fastapi_app.get("/Users/{userId}/Items/{itemId}/UserData")
    async def get_user_item_data(
        userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        data = await _run(service.get_user_data(userId, itemId))
        return JSONResponse(data.model_dump(mode="json", by_alias=True))

    @fastapi_app.post("/Users/{userId}/FavoriteItems/{itemId}")
    async def mark_favorite_item(userId: uuid.UUID, itemId: uuid.UUID) -> JSONResponse:
        service = get_library_service(fastapi_app)
        data = await _run(service.mark_favorite(userId, itemId))
        return JSONResponse(data.model_dump(mode="json", by_alias=True))

    @fastapi_app.delete("/Users/{userId}/FavoriteItems/{itemId}")
    async def unmark_favorite_item(
        userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        data = await _run(service.unmark_favorite(userId, itemId))
        return JSONResponse(data.model_dump(mode="json", by_alias=True))

    @fastapi_app.delete("/Users/{userId}/Items/{itemId}/Rating")
    async def delete_user_item_rating(
        userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        data = await _run(service.delete_rating(userId, itemId))
        return JSONResponse(data.model_dump(mode="json", by_alias=True))

    @fastapi_app.post("/Users/{userId}/Items/{itemId}/Rating")
    async def update_user_item_rating(
        userId: uuid.UUID, itemId: uuid.UUID, likes: bool | None = None
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        data = await _run(service.update_rating(userId, itemId, likes))
        return JSONResponse(data.model_dump(mode="json", by_alias=True))

    @fastapi_app.get("/Users/{userId}/Items/{itemId}/LocalTrailers")
    async def get_local_trailers(
        request: Request, userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        views = await _run(
            service.get_local_trailers(userId, itemId, _options(request))
        )
        return JSONResponse([view.to_payload() for view in views])

    @fastapi_app.get("/Users/{userId}/Items/{itemId}/SpecialFeatures")
    async def get_special_features(
        request: Request, userId: uuid.UUID, itemId: uuid.UUID
    ) -> JSONResponse:
        service = get_library_service(fastapi_app)
        views = await _run(
            service.get_special_features(userId, itemId, _options(request))
        )
        return JSONResponse([view.to_payload() for view in views])


app = create_app()
