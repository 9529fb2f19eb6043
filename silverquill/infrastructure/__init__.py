"""Infrastructure layer components."""

from .intercepting_transport import InterceptingTransport
from .json_file_preference_store import JsonFilePreferenceStore
from .local_asset_cache import LocalAssetCache
from .local_cover_storage import LocalCoverStorage
from .local_preference_store import LocalPreferenceStore
from .local_remote_store import LocalRemoteStore
from .postgrest_remote_store import PostgrestRemoteStore
from .s3_asset_cache import S3AssetCache
from .s3_cover_storage import S3CoverStorage
from .static_identity_provider import StaticIdentityProvider
from .supabase_identity_provider import SupabaseIdentityProvider

__all__ = [
    "InterceptingTransport",
    "JsonFilePreferenceStore",
    "LocalAssetCache",
    "LocalCoverStorage",
    "LocalPreferenceStore",
    "LocalRemoteStore",
    "PostgrestRemoteStore",
    "S3AssetCache",
    "S3CoverStorage",
    "StaticIdentityProvider",
    "SupabaseIdentityProvider",
]
