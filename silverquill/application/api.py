"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .config import Settings, settings
from .controller import JournalController
from .schemas import (
    CreateBookRequest,
    FlagRequest,
    LogSessionRequest,
    QuoteRequest,
    TagRequest,
    ThemeRequest,
    UpdateBookRequest,
    WishlistRequest,
)
from ..domain.entities.book import BookChanges, BookDraft, CoverUpload
from ..domain.entities.identity import Identity
from ..domain.errors import (
    EntityNotFoundError,
    IdentityRequiredError,
    RemoteStoreError,
    SilverQuillError,
)
from ..domain.services.caching_proxy import CachingProxy
from ..domain.services.library_queries import ALL, SavedTab
from ..domain.services.theme_preference import ThemePreference
from ..infrastructure.intercepting_transport import InterceptingTransport
from ..infrastructure.json_file_preference_store import JsonFilePreferenceStore
from ..infrastructure.local_asset_cache import LocalAssetCache
from ..infrastructure.local_cover_storage import LocalCoverStorage
from ..infrastructure.local_remote_store import LocalRemoteStore
from ..infrastructure.postgrest_remote_store import PostgrestRemoteStore
from ..infrastructure.s3_asset_cache import S3AssetCache
from ..infrastructure.s3_cover_storage import S3CoverStorage
from ..infrastructure.static_identity_provider import StaticIdentityProvider
from ..infrastructure.supabase_identity_provider import SupabaseIdentityProvider

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Response headers that describe the upstream encoding rather than the body we relay.
_HOP_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def build_controller(config: Settings = settings) -> JournalController:
    """Wire adapters according to configuration.

    Without a Supabase URL the journal runs against the in-memory store with
    a fixed development identity.
    """
    if config.asset_cache_backend == "s3":
        cache = S3AssetCache(config.asset_cache_bucket, config.cache_version, config.aws_region)
    else:
        cache = LocalAssetCache(config.cache_version)

    bypass_origins = [config.supabase_url] if config.supabase_url else []
    proxy = CachingProxy(
        cache,
        httpx.AsyncHTTPTransport(),
        app_origin=config.app_origin,
        version=config.cache_version,
        bypass_origins=bypass_origins,
        bypass_host_suffixes=config.bypass_host_suffixes,
    )

    if config.supabase_url:
        transport = InterceptingTransport(proxy)
        remote_store = PostgrestRemoteStore(
            config.supabase_url, config.supabase_anon_key, timeout=config.request_timeout, transport=transport
        )
        identity_provider = SupabaseIdentityProvider(
            config.supabase_url, config.supabase_anon_key, timeout=config.request_timeout, transport=transport
        )
        cover_storage = S3CoverStorage(
            config.covers_bucket, region_name=config.aws_region, public_base_url=config.covers_public_base_url
        )
    else:
        logger.info("No Supabase URL configured, using the in-memory store")
        remote_store = LocalRemoteStore()
        identity_provider = StaticIdentityProvider(
            Identity(user_id=config.dev_user_id, access_token=config.dev_access_token)
        )
        cover_storage = LocalCoverStorage()

    theme = ThemePreference(JsonFilePreferenceStore(config.preferences_path))
    return JournalController(
        remote_store=remote_store,
        identity_provider=identity_provider,
        theme=theme,
        cover_storage=cover_storage,
        proxy=proxy,
    )


def _error_response(status_code: int, error: SilverQuillError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error.to_dict()})


def create_app(controller: Optional[JournalController] = None, config: Settings = settings) -> FastAPI:
    """Create the FastAPI app around ``controller`` (built from ``config`` if omitted)."""
    controller = controller or build_controller(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if controller.proxy is not None:
            await controller.proxy.install()
            evicted = await controller.proxy.activate()
            if evicted:
                logger.info(f"Evicted cache generations: {evicted}")
        yield
        if controller.proxy is not None:
            await controller.proxy.wait_for_pending()
        for adapter in (controller.remote_store, controller.identity_provider):
            if hasattr(adapter, "aclose"):
                await adapter.aclose()

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.controller = controller

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(IdentityRequiredError)
    async def identity_required(request: Request, exc: IdentityRequiredError):
        return _error_response(401, exc)

    @app.exception_handler(EntityNotFoundError)
    async def entity_not_found(request: Request, exc: EntityNotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(RemoteStoreError)
    async def remote_store_failed(request: Request, exc: RemoteStoreError):
        logger.error(f"Remote store error on {request.url.path}: {exc}")
        return _error_response(502, exc)

    @app.exception_handler(SilverQuillError)
    async def journal_error(request: Request, exc: SilverQuillError):
        return _error_response(400, exc)

    @app.middleware("http")
    async def bearer_identity(request: Request, call_next):
        authorization = request.headers.get("authorization", "")
        token = authorization[7:].strip() if authorization.lower().startswith("bearer ") else None
        bound = controller.authenticate(token)
        try:
            return await call_next(request)
        finally:
            controller.release(bound)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return controller.get_health_status()

    # ===== Books =====

    @app.get("/books")
    async def list_books(
        search: str = Query("", description="Substring of title or author"),
        filter: str = Query(ALL, description="'All', a status, or a tag id"),
    ):
        return {"books": await controller.list_books(search, filter)}

    @app.post("/books", status_code=201)
    async def create_book(body: CreateBookRequest):
        draft = BookDraft(**body.model_dump(exclude={"quotes", "tag_ids"}))
        return await controller.create_book(draft, body.quotes, body.tag_ids)

    @app.get("/books/{book_id}")
    async def get_book(book_id: str):
        return await controller.get_book(book_id)

    @app.put("/books/{book_id}")
    async def update_book(book_id: str, body: UpdateBookRequest):
        return await controller.update_book(book_id, body.changes(), quotes=body.quotes, tag_ids=body.tag_ids)

    @app.post("/books/{book_id}/cover")
    async def upload_cover(book_id: str, file: UploadFile = File(...), content_type: str = Form(None)):
        """Replace a book's cover image."""
        content = await file.read()
        if not content:
            raise HTTPException(status_code=400, detail="Empty cover upload")
        cover = CoverUpload(
            filename=file.filename or "cover",
            content=content,
            content_type=content_type or file.content_type or "application/octet-stream",
        )
        return await controller.update_book(book_id, BookChanges(), cover=cover)

    @app.delete("/books/{book_id}")
    async def delete_book(book_id: str):
        return await controller.delete_book(book_id)

    @app.post("/books/{book_id}/sessions", status_code=201)
    async def log_session(book_id: str, body: LogSessionRequest):
        return await controller.log_session(book_id, body.pages_read, body.minutes_read)

    @app.post("/books/{book_id}/quotes", status_code=201)
    async def add_quote(book_id: str, body: QuoteRequest):
        return await controller.add_quote(book_id, body.text)

    @app.post("/books/{book_id}/favorite")
    async def favorite(book_id: str, body: Optional[FlagRequest] = None):
        return await controller.set_favorite(book_id, body.value if body else None)

    @app.post("/books/{book_id}/bookmark")
    async def bookmark(book_id: str, body: Optional[FlagRequest] = None):
        return await controller.set_bookmarked(book_id, body.value if body else None)

    # ===== Tags =====

    @app.get("/tags")
    async def list_tags():
        return {"tags": await controller.list_tags()}

    @app.post("/tags", status_code=201)
    async def create_tag(body: TagRequest):
        return await controller.create_tag(body.name, body.color)

    @app.delete("/tags/{tag_id}")
    async def delete_tag(tag_id: str):
        return await controller.delete_tag(tag_id)

    # ===== Wishlist =====

    @app.get("/wishlist")
    async def list_wishlist():
        return {"wishlist": await controller.list_wishlist()}

    @app.post("/wishlist", status_code=201)
    async def add_wishlist_item(body: WishlistRequest):
        return await controller.add_wishlist_item(body.title, body.author, body.notes)

    @app.delete("/wishlist/{item_id}")
    async def remove_wishlist_item(item_id: str):
        return await controller.remove_wishlist_item(item_id)

    @app.post("/wishlist/{item_id}/promote", status_code=201)
    async def promote_wishlist_item(item_id: str):
        return await controller.promote_wishlist_item(item_id)

    # ===== Views =====

    @app.get("/quotes")
    async def list_quotes():
        return {"quotes": await controller.list_quotes()}

    @app.get("/saved")
    async def list_saved(tab: SavedTab = Query(SavedTab.FAVORITES)):
        return {"tab": tab.value, "books": await controller.list_saved(tab)}

    # ===== Preferences =====

    @app.get("/preferences/theme")
    async def get_theme():
        return controller.get_theme()

    @app.put("/preferences/theme")
    async def set_theme(body: ThemeRequest):
        result = controller.set_theme(body.theme)
        if not result["accepted"]:
            raise HTTPException(status_code=400, detail=f"Unknown theme {body.theme!r}")
        return result

    # ===== Application assets =====

    @app.get("/assets/{path:path}")
    async def get_asset(path: str):
        """Serve an application asset through the caching proxy."""
        if controller.proxy is None:
            raise HTTPException(status_code=404, detail="Asset proxy disabled")
        upstream = httpx.Request("GET", f"{controller.proxy.app_origin}/{path}")
        try:
            response = await controller.proxy.fetch(upstream)
        except httpx.HTTPError as e:
            logger.error(f"Error fetching asset {path}: {e}")
            raise HTTPException(status_code=502, detail=f"Asset unavailable: {e}")
        try:
            content = await response.aread()
        finally:
            await response.aclose()
        headers = {k: v for k, v in response.headers.items() if k.lower() not in _HOP_HEADERS}
        return Response(content=content, status_code=response.status_code, headers=headers)

    return app


app = create_app()
