"""
Bucket configuration, URL resolution and signing.

Framework-agnostic: nothing here imports boto3 or FastAPI. Network
access happens only through an injected StorageTransport.
"""

from .bucket import Bucket
from .cache import UrlCache, UrlCacheKey, fingerprint_options
from .clock import ClockSynchronizer
from .endpoints import public_url, resolve_endpoint
from .errors import (
    BucketError,
    InvalidConfig,
    NotConfigured,
    UnknownAlias,
    UrlConstructionError,
)
from .models import BucketConfig, EndpointDecision, EndpointKind
from .paths import compose_path
from .registry import BucketRegistry
from .signing import LegacySigner
from .transport import (
    ObjectMetadata,
    ObjectNotFoundError,
    StorageError,
    StorageTransport,
)

__all__ = [
    "Bucket",
    "BucketConfig",
    "BucketError",
    "BucketRegistry",
    "ClockSynchronizer",
    "EndpointDecision",
    "EndpointKind",
    "InvalidConfig",
    "LegacySigner",
    "NotConfigured",
    "ObjectMetadata",
    "ObjectNotFoundError",
    "StorageError",
    "StorageTransport",
    "UnknownAlias",
    "UrlCache",
    "UrlCacheKey",
    "UrlConstructionError",
    "compose_path",
    "fingerprint_options",
    "public_url",
    "resolve_endpoint",
]
