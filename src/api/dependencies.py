"""
FastAPI dependency injection.

Dependencies provide the settings, the bucket registry and resolved
bucket handles to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Tests swap the registry with app.dependency_overrides
- Configuration is centralized

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.buckets import Bucket, BucketRegistry, NotConfigured, UnknownAlias
from ..core.buckets.models import BucketConfig
from ..infrastructure.storage.client import TransportTimeouts, create_storage_transport

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Signed URLs grant access to private objects, so every bucket route
    sits behind a key.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

@lru_cache()
def get_registry() -> BucketRegistry:
    """
    Provide the process-wide bucket registry.

    Built once from settings: the default bucket (if configured) is
    registered immediately so configuration errors surface at the
    first request instead of deep inside a URL call. Call
    get_registry.cache_clear() in tests to start over.
    """
    settings = get_settings()
    timeouts = TransportTimeouts(
        connect_timeout_seconds=settings.storage_connect_timeout_seconds,
        read_timeout_seconds=settings.storage_read_timeout_seconds,
    )

    def transport_factory(config: BucketConfig):
        return create_storage_transport(
            config,
            mock_mode=settings.storage_mock_mode,
            timeouts=timeouts,
        )

    registry = BucketRegistry(
        transport_factory=transport_factory,
        clock_timeout_seconds=settings.clock_probe_timeout_seconds,
    )

    config = settings.bucket_config()
    if config is not None:
        registry.register(config.alias, config)
    else:
        logger.warning("No default bucket configured (STORAGE_BUCKET_NAME is empty)")

    return registry


def get_bucket(
    alias: str,
    registry: Annotated[BucketRegistry, Depends(get_registry)],
) -> Bucket:
    """
    Resolve the bucket named in the path.

    Maps registry errors to HTTP: unknown alias is a 404, an empty
    registry means the service isn't configured (503).
    """
    try:
        return registry.resolve(alias)
    except UnknownAlias as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NotConfigured as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
RegistryDep = Annotated[BucketRegistry, Depends(get_registry)]
BucketDep = Annotated[Bucket, Depends(get_bucket)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
