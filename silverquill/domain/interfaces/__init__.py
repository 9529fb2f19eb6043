"""Domain interfaces for the reading journal sync core."""

from .asset_cache import AssetCache
from .cover_storage import CoverStorage
from .identity_provider import IdentityProvider
from .preference_store import PreferenceStore
from .remote_store import RemoteStore, Tables

__all__ = [
    "AssetCache",
    "CoverStorage",
    "IdentityProvider",
    "PreferenceStore",
    "RemoteStore",
    "Tables",
]
