"""
Bucket handle: the façade callers work with.

A Bucket binds one validated configuration to its endpoint decision,
clock synchronizer, legacy signer and URL cache, and exposes the URL
operations built from them. Anything that moves bytes is delegated to
the storage transport it was constructed with.

Handles are normally obtained from a BucketRegistry, which builds at
most one per alias.
"""

import logging
import mimetypes
import os
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

from .cache import UrlCache, UrlCacheKey, fingerprint_options
from .clock import DEFAULT_PROBE_TIMEOUT_SECONDS, ClockSynchronizer
from .endpoints import bucket_base_url, ensure_valid_url, public_url, resolve_endpoint, with_scheme
from .models import BucketConfig, EndpointDecision, EndpointKind
from .paths import compose_path
from .signing import Digest, LegacySigner, encode_object_key, hmac_sha1
from .transport import ListedObject, ObjectMetadata, ObjectNotFoundError, StorageTransport

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 3600

# Friendly option names accepted by download_url, mapped to the
# response-override parameters of GetObject
DOWNLOAD_OPTION_PARAMS: dict[str, str] = {
    "content_type": "ResponseContentType",
    "content_disposition": "ResponseContentDisposition",
    "content_language": "ResponseContentLanguage",
    "cache_control": "ResponseCacheControl",
    "expires": "ResponseExpires",
    "version_id": "VersionId",
}

PRESIGN_OPERATIONS: dict[str, str] = {
    "GET": "get_object",
    "HEAD": "head_object",
    "PUT": "put_object",
    "DELETE": "delete_object",
}


class Bucket:
    """
    URL resolution, signing and delegated I/O for one bucket.

    Thread-safe: the URL cache and clock carry their own locks, and the
    mutable configuration (the CDN URL and default metadata) is swapped
    under a lock.
    """

    def __init__(
        self,
        config: BucketConfig,
        transport: StorageTransport,
        clock_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        wall_clock: Callable[[], float] = time.time,
        digest: Digest = hmac_sha1,
    ) -> None:
        self._config = config
        self._transport = transport
        self._decision = resolve_endpoint(config)
        self._clock = ClockSynchronizer(
            transport.head_bucket_date,
            timeout_seconds=clock_timeout_seconds,
            wall_clock=wall_clock,
        )
        self._signer = LegacySigner(
            bucket_name=config.bucket_name,
            access_key=config.access_key,
            secret_key=config.secret_key,
            clock=self._clock,
            digest=digest,
        )
        self._url_cache = UrlCache()
        self._default_metadata: dict[str, str] = {}
        self._config_lock = threading.Lock()

        logger.info(
            "Initialized bucket handle",
            extra={
                "alias": config.alias,
                "bucket": config.bucket_name,
                "endpoint_kind": self._decision.kind.value,
                "path_style": self._decision.path_style,
            }
        )

    # -----------------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------------

    @property
    def config(self) -> BucketConfig:
        with self._config_lock:
            return self._config

    @property
    def alias(self) -> str:
        return self._config.alias

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    @property
    def region(self) -> str:
        return self._config.region

    @property
    def access_key(self) -> str:
        return self._config.access_key

    @property
    def root_prefix(self) -> str:
        return self._config.root_prefix

    @property
    def cdn_url(self) -> Optional[str]:
        return self.config.cdn_url

    @property
    def endpoint(self) -> EndpointDecision:
        return self._decision

    @property
    def uses_path_style(self) -> bool:
        return self._decision.path_style

    @property
    def uses_accelerate(self) -> bool:
        return self._decision.kind is EndpointKind.ACCELERATE

    @property
    def uses_custom_endpoint(self) -> bool:
        return self._decision.kind is EndpointKind.CUSTOM

    @property
    def clock(self) -> ClockSynchronizer:
        return self._clock

    @property
    def transport(self) -> StorageTransport:
        return self._transport

    @property
    def default_metadata(self) -> dict[str, str]:
        with self._config_lock:
            return dict(self._default_metadata)

    def set_default_metadata(self, metadata: Mapping[str, str]) -> "Bucket":
        """Metadata merged into every upload (per-call values win)."""
        with self._config_lock:
            self._default_metadata = dict(metadata)
        return self

    def endpoint_url(self, use_https: bool = True) -> str:
        """Base endpoint with the requested scheme (no bucket segment)."""
        return with_scheme(self._decision, use_https)

    def path(self, relative_path: str, include_bucket: bool = False) -> str:
        """Compose a key under this bucket's root prefix."""
        return compose_path(
            relative_path,
            self._config.root_prefix,
            bucket_name=self._config.bucket_name,
            include_bucket=include_bucket,
        )

    def time(self) -> int:
        """Epoch seconds corrected for remote clock skew."""
        return self._clock.now()

    # -----------------------------------------------------------------------
    # URL operations
    # -----------------------------------------------------------------------

    def object_url(self, path: str, use_https: bool = True, use_cdn: bool = True) -> str:
        """
        Public URL for an object.

        The CDN is used when configured and use_cdn is True. The URL is
        not signed, so it only works for publicly readable objects.
        """
        config = self.config
        # Keyed on the CDN base itself, so a URL computed against a replaced
        # CDN can never answer for the current one.
        cdn_base = config.cdn_url if use_cdn else None
        cache_key = UrlCacheKey(
            operation="object",
            object_key=path,
            options_fingerprint=fingerprint_options(
                {"https": use_https, "cdn": cdn_base}
            ),
        )

        return self._url_cache.get_or_compute(
            cache_key,
            lambda: public_url(
                config,
                self._decision,
                self.path(path),
                use_https=use_https,
                use_cdn=use_cdn,
            ),
        )

    def legacy_signed_url(
        self,
        path: str,
        expires_in: int = DEFAULT_EXPIRY_SECONDS,
        use_https: bool = True,
    ) -> str:
        """
        Time-limited GET URL signed with the legacy query-string scheme.

        Expiry is computed from the skew-corrected clock. Repeated calls
        with the same arguments return the cached URL until the cache is
        cleared.
        """
        cache_key = UrlCacheKey(
            operation="legacy",
            object_key=path,
            expires_in=expires_in,
            method="GET",
            options_fingerprint=fingerprint_options({"https": use_https}),
        )

        def compute() -> str:
            composed = self.path(encode_object_key(path))
            base = bucket_base_url(self._config, self._decision, use_https)
            return ensure_valid_url(self._signer.sign(base, composed, expires_in))

        return self._url_cache.get_or_compute(cache_key, compute)

    def download_url(
        self,
        path: str,
        expires_in: int = DEFAULT_EXPIRY_SECONDS,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Presigned URL that makes browsers download rather than display.

        Options:
            filename: Name offered in the attachment disposition
                (defaults to the key's basename).
            content_type, content_disposition, content_language,
            cache_control, expires, version_id: response overrides.
        """
        options = dict(options or {})
        unknown = set(options) - set(DOWNLOAD_OPTION_PARAMS) - {"filename"}
        if unknown:
            raise ValueError(f"Unknown download options: {', '.join(sorted(unknown))}")

        cache_key = UrlCacheKey(
            operation="download",
            object_key=path,
            expires_in=expires_in,
            method="GET",
            options_fingerprint=fingerprint_options(options),
        )

        def compute() -> str:
            key = self.path(path)
            filename = options.get("filename") or os.path.basename(key)
            params: dict[str, Any] = {
                "Bucket": self._config.bucket_name,
                "Key": key,
                "ResponseContentDisposition": f'attachment; filename="{filename}"',
            }
            for name, value in options.items():
                if name != "filename":
                    params[DOWNLOAD_OPTION_PARAMS[name]] = value
            return self._transport.generate_presigned_url(
                "get_object", params, expires_in, http_method="GET"
            )

        return self._url_cache.get_or_compute(cache_key, compute)

    def presigned_url(
        self,
        path: str,
        expires_in: int = DEFAULT_EXPIRY_SECONDS,
        method: str = "GET",
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Delegated presigned URL for GET, HEAD, PUT or DELETE.

        options are extra request parameters in the transport's naming
        (e.g. {"ContentType": "image/png"} for a PUT).
        """
        method = method.upper()
        operation = PRESIGN_OPERATIONS.get(method)
        if operation is None:
            raise ValueError(f"Unsupported presign method: {method}")

        options = dict(options or {})
        cache_key = UrlCacheKey(
            operation="presigned",
            object_key=path,
            expires_in=expires_in,
            method=method,
            options_fingerprint=fingerprint_options(options),
        )

        def compute() -> str:
            params = {**options, "Bucket": self._config.bucket_name, "Key": self.path(path)}
            return self._transport.generate_presigned_url(
                operation, params, expires_in, http_method=method
            )

        return self._url_cache.get_or_compute(cache_key, compute)

    def presigned_post(
        self,
        path: str,
        expires_in: int = DEFAULT_EXPIRY_SECONDS,
        conditions: Optional[Sequence[Any]] = None,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        """Presigned POST form for direct browser uploads. Not cached."""
        return self._transport.generate_presigned_post(
            self.path(path), expires_in, fields=fields, conditions=conditions
        )

    def set_cdn_url(self, cdn_url: Optional[str]) -> "Bucket":
        """
        Point public URLs at a (new) CDN, or at none with None.

        Clears the URL cache, since every cached public URL may change.
        """
        with self._config_lock:
            self._config = replace(self._config, cdn_url=cdn_url)
        self._url_cache.clear()

        logger.info(
            "Updated CDN URL",
            extra={"alias": self._config.alias, "cdn_url": self._config.cdn_url},
        )
        return self

    def clear_url_cache(self) -> "Bucket":
        self._url_cache.clear()
        logger.debug("Cleared URL cache", extra={"alias": self._config.alias})
        return self

    # -----------------------------------------------------------------------
    # Delegated object I/O
    # -----------------------------------------------------------------------

    def get(self, path: str) -> Optional[bytes]:
        """Object contents, or None if the object doesn't exist."""
        try:
            return self._transport.get_object(self.path(path))
        except ObjectNotFoundError:
            return None

    def metadata(self, path: str) -> Optional[ObjectMetadata]:
        """Object metadata, or None if the object doesn't exist."""
        try:
            return self._transport.head_object(self.path(path))
        except ObjectNotFoundError:
            return None

    def exists(self, path: str) -> bool:
        return self.metadata(path) is not None

    def put(
        self,
        path: str,
        content: Any,
        metadata: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Mapping[str, Any]:
        """
        Upload content to path.

        metadata is merged over the handle's default metadata. extra
        carries transport parameters such as ACL or CacheControl.
        """
        merged = {**self.default_metadata, **(metadata or {})}
        return self._transport.put_object(
            self.path(path),
            content,
            content_type=content_type,
            metadata=merged or None,
            extra=extra,
        )

    def put_file(
        self,
        path: str,
        local_path: str,
        metadata: Optional[Mapping[str, str]] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Mapping[str, Any]:
        """Stream a local file to path, guessing its content type."""
        if not os.path.isfile(local_path):
            raise FileNotFoundError(f"Local file not found: {local_path}")

        content_type, _ = mimetypes.guess_type(local_path)
        with open(local_path, "rb") as fh:
            return self.put(
                path,
                fh,
                metadata=metadata,
                content_type=content_type or "application/octet-stream",
                extra=extra,
            )

    def copy(
        self,
        source_path: str,
        destination_path: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Mapping[str, Any]:
        return self._transport.copy_object(
            self.path(source_path, include_bucket=True),
            self.path(destination_path),
            metadata=metadata,
        )

    def move(
        self,
        source_path: str,
        destination_path: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Mapping[str, Any]:
        """Copy then delete the source."""
        result = self.copy(source_path, destination_path, metadata)
        self.delete(source_path)
        return result

    def delete(self, path: str) -> None:
        self._transport.delete_object(self.path(path))

    def delete_many(self, paths: Sequence[str]) -> int:
        if not paths:
            return 0
        return self._transport.delete_objects([self.path(p) for p in paths])

    def list_files(self, prefix: str = "", recursive: bool = True) -> list[str]:
        """
        Names under prefix, relative to it.

        Non-recursive listings include immediate "subdirectories"
        (common prefixes) without their trailing slash.
        """
        composed = self.path(prefix).rstrip("/")
        list_prefix = f"{composed}/" if composed else ""
        delimiter = None if recursive else "/"

        files: list[str] = []
        token: Optional[str] = None
        while True:
            page = self._transport.list_objects_page(
                list_prefix, continuation_token=token, delimiter=delimiter
            )
            for obj in page.objects:
                if obj.key != list_prefix:
                    files.append(obj.key[len(list_prefix):])
            for common in page.common_prefixes:
                files.append(common[len(list_prefix):].rstrip("/"))
            token = page.next_token
            if token is None:
                break

        return [name for name in files if name]

    def iter_objects(self, prefix: str = "") -> Iterator[ListedObject]:
        """Every object under a raw (uncomposed) key prefix, page by page."""
        token: Optional[str] = None
        while True:
            page = self._transport.list_objects_page(prefix, continuation_token=token)
            yield from page.objects
            token = page.next_token
            if token is None:
                return

    def bucket_size(self) -> int:
        """Total bytes stored in the bucket."""
        return sum(obj.size for obj in self.iter_objects())

    def object_count(self) -> int:
        return sum(1 for _ in self.iter_objects())
