"""Journal controller coordinating the sync core, preferences and asset proxy."""

import logging
from contextvars import Token
from typing import Optional

from ..domain.entities.book import Book, BookChanges, BookDraft, CoverUpload
from ..domain.errors import IdentityRequiredError
from ..domain.services.caching_proxy import CachingProxy
from ..domain.services.entity_graph import EntityGraph
from ..domain.services.library_queries import ALL, SavedTab, filter_books, progress_percent, quote_feed, saved_books
from ..domain.services.sync_service import SyncService
from ..domain.services.theme_preference import ThemePreference
from ..domain.interfaces.cover_storage import CoverStorage
from ..domain.interfaces.identity_provider import IdentityProvider
from ..domain.interfaces.remote_store import RemoteStore
from ..infrastructure.supabase_identity_provider import SupabaseIdentityProvider

logger = logging.getLogger(__name__)


class JournalController:
    """
    Controller for the reading journal.

    Injected with the store, identity, storage and preference adapters. Each
    identity seen gets its own SyncService (and so its own EntityGraph);
    every call resolves the caller's identity first and works on that one.
    The API layer stays thin and only translates HTTP to these calls.
    """

    def __init__(
        self,
        remote_store: RemoteStore,
        identity_provider: IdentityProvider,
        theme: ThemePreference,
        cover_storage: Optional[CoverStorage] = None,
        proxy: Optional[CachingProxy] = None,
    ):
        """
        Initialize the controller with injected dependencies.

        Args:
            remote_store: Hosted (or in-memory) table store
            identity_provider: Source of the active identity
            theme: Persisted theme preference
            cover_storage: Object storage for cover images
            proxy: Caching proxy serving application assets
        """
        self.remote_store = remote_store
        self.identity_provider = identity_provider
        self.cover_storage = cover_storage
        self.theme = theme
        self.proxy = proxy
        self._syncs: dict[str, SyncService] = {}

        self.theme.load()
        logger.info("JournalController initialized with providers")

    def authenticate(self, access_token: Optional[str]) -> Optional[Token]:
        """Bind the caller's bearer token to the current request context.

        Only token-based identity providers take part; the returned context
        token goes back to ``release`` once the request is done.
        """
        if isinstance(self.identity_provider, SupabaseIdentityProvider):
            return self.identity_provider.set_token(access_token)
        return None

    def release(self, token: Optional[Token]) -> None:
        if token is not None and isinstance(self.identity_provider, SupabaseIdentityProvider):
            self.identity_provider.reset_token(token)

    async def session(self, operation: str) -> SyncService:
        """Return the SyncService of the caller's identity.

        Raises:
            IdentityRequiredError: If nobody is signed in.
        """
        identity = await self.identity_provider.current()
        if identity is None:
            logger.warning(f"Refusing {operation}: no active identity")
            raise IdentityRequiredError(operation=operation)
        sync = self._syncs.get(identity.user_id)
        if sync is None:
            logger.info(f"Starting session for {identity.user_id}")
            sync = SyncService(self.remote_store, self.identity_provider, cover_storage=self.cover_storage)
            self._syncs[identity.user_id] = sync
        return sync

    def graph_for(self, user_id: str) -> Optional[EntityGraph]:
        """Graph held for ``user_id``, if that identity has been seen."""
        sync = self._syncs.get(user_id)
        return sync.graph if sync else None

    def get_health_status(self) -> dict:
        """
        Get application health status.

        Returns:
            Dict containing health status information
        """
        return {
            "status": "healthy",
            "providers": {
                "remote_store": type(self.remote_store).__name__,
                "identity_provider": type(self.identity_provider).__name__,
                "cover_storage": type(self.cover_storage).__name__ if self.cover_storage else None,
                "asset_cache": type(self.proxy.cache).__name__ if self.proxy else None,
            },
            "proxy": self.proxy.state.value if self.proxy else None,
            "sessions": len(self._syncs),
            "divergent": sorted(
                entity_id for sync in self._syncs.values() for entity_id in sync.graph.divergent
            ),
        }

    # ===== Books =====

    def book_view(self, graph: EntityGraph, book: Book) -> dict:
        view = book.model_dump(mode="json")
        view["progress"] = progress_percent(book)
        view["tags"] = [tag.model_dump(mode="json") for tag in graph.tags_for(book.id)]
        return view

    def book_detail(self, graph: EntityGraph, book: Book) -> dict:
        view = self.book_view(graph, book)
        view["quotes"] = [q.model_dump(mode="json") for q in graph.quotes_for(book.id)]
        view["sessions"] = [s.model_dump(mode="json") for s in graph.sessions_for(book.id)]
        return view

    async def list_books(self, search: str = "", filter: str = ALL) -> list:
        graph = await (await self.session("list_books")).refresh()
        return [self.book_view(graph, book) for book in filter_books(graph, search, filter)]

    async def get_book(self, book_id: str) -> dict:
        graph = await (await self.session("get_book")).refresh()
        return self.book_detail(graph, graph.book(book_id))

    async def create_book(self, draft: BookDraft, quotes: list, tag_ids: list) -> dict:
        sync = await self.session("create_book")
        result = await sync.create_book(draft, quotes=quotes, tag_ids=tag_ids)
        return self._protocol_view(sync.graph, result)

    async def update_book(
        self,
        book_id: str,
        changes: BookChanges,
        quotes: Optional[list] = None,
        tag_ids: Optional[list] = None,
        cover: Optional[CoverUpload] = None,
    ) -> dict:
        sync = await self.session("update_book")
        result = await sync.update_book(book_id, changes, quotes=quotes, tag_ids=tag_ids, cover=cover)
        return self._protocol_view(sync.graph, result)

    async def delete_book(self, book_id: str) -> dict:
        book = await (await self.session("delete_book")).delete_book(book_id)
        return {"deleted": book.id}

    async def log_session(self, book_id: str, pages_read: int, minutes_read: int) -> dict:
        sync = await self.session("log_reading_session")
        result = await sync.log_reading_session(book_id, pages_read, minutes_read)
        return {
            "session": result.session.model_dump(mode="json"),
            "book": self.book_view(sync.graph, result.book),
        }

    async def add_quote(self, book_id: str, text: str) -> dict:
        quote = await (await self.session("add_quote")).add_quote(book_id, text)
        return quote.model_dump(mode="json")

    async def set_favorite(self, book_id: str, value: Optional[bool] = None) -> dict:
        sync = await self.session("set_favorite")
        if value is None:
            book = await sync.toggle_favorite(book_id)
        else:
            book = await sync.set_favorite(book_id, value)
        return self.book_view(sync.graph, book)

    async def set_bookmarked(self, book_id: str, value: Optional[bool] = None) -> dict:
        sync = await self.session("set_bookmarked")
        if value is None:
            book = await sync.toggle_bookmarked(book_id)
        else:
            book = await sync.set_bookmarked(book_id, value)
        return self.book_view(sync.graph, book)

    def _protocol_view(self, graph: EntityGraph, result) -> dict:
        return {
            "book": self.book_detail(graph, result.book),
            "complete": result.complete,
            "steps": [step.model_dump() for step in result.steps],
        }

    # ===== Tags =====

    async def list_tags(self) -> list:
        graph = await (await self.session("list_tags")).refresh()
        return [tag.model_dump(mode="json") for tag in graph.tags()]

    async def create_tag(self, name: str, color: str) -> dict:
        tag = await (await self.session("create_tag")).create_tag(name, color)
        return tag.model_dump(mode="json")

    async def delete_tag(self, tag_id: str) -> dict:
        tag = await (await self.session("delete_tag")).delete_tag(tag_id)
        return {"deleted": tag.id}

    # ===== Wishlist =====

    async def list_wishlist(self) -> list:
        graph = await (await self.session("list_wishlist")).refresh()
        return [item.model_dump(mode="json") for item in graph.wishlist()]

    async def add_wishlist_item(self, title: str, author: str, notes: Optional[str]) -> dict:
        item = await (await self.session("add_wishlist_item")).add_wishlist_item(title, author, notes)
        return item.model_dump(mode="json")

    async def remove_wishlist_item(self, item_id: str) -> dict:
        item = await (await self.session("remove_wishlist_item")).remove_wishlist_item(item_id)
        return {"deleted": item.id}

    async def promote_wishlist_item(self, item_id: str) -> dict:
        sync = await self.session("promote_wishlist_item")
        book = await sync.promote_wishlist_item(item_id)
        return self.book_view(sync.graph, book)

    # ===== Read-side views =====

    async def list_quotes(self) -> list:
        graph = await (await self.session("list_quotes")).refresh()
        return [view.model_dump(mode="json") for view in quote_feed(graph)]

    async def list_saved(self, tab: SavedTab) -> list:
        graph = await (await self.session("list_saved")).refresh()
        return [self.book_view(graph, book) for book in saved_books(graph, tab)]

    # ===== Preferences =====

    def get_theme(self) -> dict:
        return {"theme": self.theme.current}

    def set_theme(self, theme: str) -> dict:
        accepted = self.theme.change(theme)
        return {"theme": self.theme.current, "accepted": accepted}
