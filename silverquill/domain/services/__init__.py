"""Domain services."""

from .caching_proxy import CachingProxy, ProxyState
from .entity_graph import EntityGraph
from .sync_service import SyncService, accrue_pages
from .theme_preference import ThemePreference

__all__ = [
    "CachingProxy",
    "ProxyState",
    "EntityGraph",
    "SyncService",
    "accrue_pages",
    "ThemePreference",
]
