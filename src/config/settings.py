"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

The STORAGE_* variables describe the default bucket, registered under
STORAGE_ALIAS when the application starts. Mock mode enables local
development without real object storage.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.buckets.models import BucketConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Bucket URL Service"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Default bucket
    storage_alias: str = Field(
        default="default",
        description="Alias the default bucket is registered under"
    )
    storage_bucket_name: str = Field(
        default="",
        description="Bucket name"
    )
    storage_region: str = Field(
        default="us-east-1",
        description="Bucket region code"
    )
    storage_access_key_id: str = Field(
        default="",
        description="Access key ID used for signing"
    )
    storage_secret_access_key: str = Field(
        default="",
        description="Secret access key used for signing"
    )
    storage_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint (MinIO, LocalStack, R2). Forces path-style addressing."
    )
    storage_cdn_url: Optional[str] = Field(
        default=None,
        description="CDN base URL. Public object URLs use it when set."
    )
    storage_use_path_style: bool = Field(
        default=False,
        description="Use https://host/bucket/key addressing on the standard endpoint"
    )
    storage_use_accelerate: bool = Field(
        default=False,
        description="Use the transfer-acceleration endpoint"
    )
    storage_root_prefix: str = Field(
        default="",
        description="Prefix prepended to every object key"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real object storage. Enables local dev without credentials."
    )

    # Network bounds
    clock_probe_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Max wait for the remote time probe before falling back to local time"
    )
    storage_connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Connect timeout for storage requests"
    )
    storage_read_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Read timeout for storage requests"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set.

        Returns list of missing required fields.
        In mock mode credentials are optional (placeholders are used),
        but a bucket name is still needed to build URLs.
        """
        missing = []

        if not self.storage_bucket_name:
            missing.append("STORAGE_BUCKET_NAME")
        if not self.storage_region:
            missing.append("STORAGE_REGION")

        if not self.storage_mock_mode:
            if not self.storage_access_key_id:
                missing.append("STORAGE_ACCESS_KEY_ID")
            if not self.storage_secret_access_key:
                missing.append("STORAGE_SECRET_ACCESS_KEY")

        return missing

    def bucket_config(self) -> Optional[BucketConfig]:
        """
        Default bucket configuration, or None if no bucket is configured.

        Raises InvalidConfig when values are present but malformed, so a
        bad environment fails at startup rather than on first request.
        """
        if not self.storage_bucket_name:
            return None

        access_key = self.storage_access_key_id
        secret_key = self.storage_secret_access_key
        if self.storage_mock_mode:
            access_key = access_key or "mock-access-key"
            secret_key = secret_key or "mock-secret-key"

        return BucketConfig(
            alias=self.storage_alias,
            bucket_name=self.storage_bucket_name,
            region=self.storage_region,
            access_key=access_key,
            secret_key=secret_key,
            custom_endpoint=self.storage_endpoint_url,
            cdn_url=self.storage_cdn_url,
            use_path_style=self.storage_use_path_style,
            use_accelerate=self.storage_use_accelerate,
            root_prefix=self.storage_root_prefix,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
