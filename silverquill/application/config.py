"""Application configuration using Pydantic Settings."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "silverquill"
    app_version: str = "0.1.0"
    debug: bool = False

    # API settings
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Remote store (Supabase); left empty the in-memory store is used
    supabase_url: Optional[str] = None
    supabase_anon_key: str = ""
    request_timeout: float = 10.0

    # Caching proxy
    app_origin: str = "http://localhost:5173"
    cache_version: str = "silverquill-v1"
    bypass_host_suffixes: list[str] = ["supabase.co"]
    asset_cache_backend: str = "memory"  # "memory" or "s3"
    asset_cache_bucket: str = "silverquill-asset-cache"

    # Cover images
    covers_bucket: str = "silverquill-covers"
    covers_public_base_url: Optional[str] = None
    aws_region: str = "us-west-2"

    # Local preferences
    preferences_path: str = "~/.silverquill/preferences.json"

    # Development identity used with the in-memory store
    dev_user_id: str = "00000000-0000-0000-0000-000000000001"
    dev_access_token: str = "dev-token"


# Create a singleton instance
settings = Settings()
