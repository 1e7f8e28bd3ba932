"""
Storage transports for S3-compatible object storage.

Supports AWS S3 (standard, path-style and transfer-accelerated
endpoints) and anything S3-compatible behind a custom endpoint (MinIO,
LocalStack, Cloudflare R2), with a mock mode for local development.

Using boto3 for the real transport because:
- SigV4 presigning and the object CRUD surface come for free
- Addressing style and acceleration are plain client options
- The same client works against every S3-compatible service

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import logging
import threading
import time
from dataclasses import dataclass
from email.utils import formatdate
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urlencode

from src.core.buckets.endpoints import resolve_endpoint
from src.core.buckets.models import BucketConfig, EndpointKind
from src.core.buckets.transport import (
    ListedObject,
    ListPage,
    ObjectMetadata,
    ObjectNotFoundError,
    StorageError,
    StorageTransport,
)

logger = logging.getLogger(__name__)

# Error codes S3 uses for a missing object (GetObject vs HeadObject)
NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


@dataclass
class TransportTimeouts:
    """
    Network bounds for the boto3 client.

    Kept short by default: the clock probe runs on a caller's request
    path and must not stall it.
    """
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 30.0
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if self.connect_timeout_seconds <= 0 or self.read_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


class BotoStorageTransport:
    """
    S3 transport backed by a boto3 client.

    The client is configured from the same endpoint decision the URL
    engine uses, so SigV4 presigned URLs and legacy signed URLs point at
    the same host.

    All failures are wrapped in StorageError (with the botocore error
    chained); a missing object raises ObjectNotFoundError.
    """

    def __init__(
        self,
        config: BucketConfig,
        timeouts: Optional[TransportTimeouts] = None,
        client: Any = None,
    ) -> None:
        """
        Initialize the boto3 client.

        We import boto3 here (not at module level) because:
        - Mock mode doesn't need it
        - Explicit about when the dependency is required
        - Tests can inject a stub client instead
        """
        self._config = config
        self._bucket = config.bucket_name

        if client is not None:
            self._s3_client = client
        else:
            self._s3_client = self._build_client(config, timeouts or TransportTimeouts())

        logger.info(
            "Initialized S3 storage transport",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.custom_endpoint,
            }
        )

    @staticmethod
    def _build_client(config: BucketConfig, timeouts: TransportTimeouts) -> Any:
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        decision = resolve_endpoint(config)
        s3_options: dict[str, Any] = {
            "addressing_style": "path" if decision.path_style else "virtual",
        }
        if decision.kind is EndpointKind.ACCELERATE:
            s3_options["use_accelerate_endpoint"] = True

        boto_config = Config(
            signature_version="s3v4",
            s3=s3_options,
            connect_timeout=timeouts.connect_timeout_seconds,
            read_timeout=timeouts.read_timeout_seconds,
            retries={"max_attempts": timeouts.max_attempts},
        )

        return boto3.client(
            "s3",
            endpoint_url=config.custom_endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=boto_config,
        )

    def _fail(self, action: str, key: Optional[str], error: Exception) -> StorageError:
        """Log and translate a botocore failure."""
        code = _error_code(error)
        if key is not None and code in NOT_FOUND_CODES:
            return ObjectNotFoundError(key)

        logger.error(
            f"Failed to {action}",
            extra={"bucket": self._bucket, "key": key, "error": str(error)}
        )
        return StorageError(f"{action.capitalize()} failed: {error}")

    def head_bucket_date(self) -> str:
        try:
            response = self._s3_client.head_bucket(Bucket=self._bucket)
        except Exception as e:
            raise self._fail("head bucket", None, e) from e

        headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
        date = headers.get("date")
        if not date:
            raise StorageError("Head bucket response has no Date header")
        return date

    def put_object(
        self,
        key: str,
        body: Any,
        content_type: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Mapping[str, Any]:
        params: dict[str, Any] = {**(extra or {}), "Bucket": self._bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = dict(metadata)

        try:
            response = self._s3_client.put_object(**params)
        except Exception as e:
            raise self._fail("upload object", key, e) from e

        logger.debug("Uploaded object", extra={"bucket": self._bucket, "key": key})
        return {"Key": key, "ETag": response.get("ETag")}

    def get_object(self, key: str) -> bytes:
        try:
            response = self._s3_client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except Exception as e:
            raise self._fail("download object", key, e) from e

    def head_object(self, key: str) -> ObjectMetadata:
        try:
            response = self._s3_client.head_object(Bucket=self._bucket, Key=key)
        except Exception as e:
            raise self._fail("head object", key, e) from e

        return ObjectMetadata(
            key=key,
            content_length=response.get("ContentLength", 0),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
            metadata=response.get("Metadata", {}),
        )

    def delete_object(self, key: str) -> None:
        try:
            self._s3_client.delete_object(Bucket=self._bucket, Key=key)
        except Exception as e:
            raise self._fail("delete object", None, e) from e

    def delete_objects(self, keys: Sequence[str]) -> int:
        if not keys:
            return 0

        try:
            self._s3_client.delete_objects(
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": key} for key in keys]},
            )
        except Exception as e:
            raise self._fail("delete objects", None, e) from e

        logger.info("Deleted objects", extra={"bucket": self._bucket, "count": len(keys)})
        return len(keys)

    def copy_object(
        self,
        copy_source: str,
        key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Mapping[str, Any]:
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "CopySource": copy_source,
        }
        if metadata:
            params["Metadata"] = dict(metadata)
            params["MetadataDirective"] = "REPLACE"

        try:
            response = self._s3_client.copy_object(**params)
        except Exception as e:
            raise self._fail("copy object", None, e) from e

        return {"Key": key, "CopyObjectResult": response.get("CopyObjectResult", {})}

    def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        delimiter: Optional[str] = None,
    ) -> ListPage:
        params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        if delimiter:
            params["Delimiter"] = delimiter

        try:
            response = self._s3_client.list_objects_v2(**params)
        except Exception as e:
            raise self._fail("list objects", None, e) from e

        return ListPage(
            objects=[
                ListedObject(key=obj["Key"], size=obj.get("Size", 0))
                for obj in response.get("Contents", [])
            ],
            common_prefixes=[p["Prefix"] for p in response.get("CommonPrefixes", [])],
            next_token=(
                response.get("NextContinuationToken")
                if response.get("IsTruncated")
                else None
            ),
        )

    def generate_presigned_url(
        self,
        operation: str,
        params: Mapping[str, Any],
        expires_in: int,
        http_method: Optional[str] = None,
    ) -> str:
        """
        Generate a temporary URL with SigV4.

        Presigned URLs enable:
        - Direct client downloads without routing through the API
        - Time-limited access (security)
        - Reduced API server load
        """
        try:
            return self._s3_client.generate_presigned_url(
                operation,
                Params=dict(params),
                ExpiresIn=expires_in,
                HttpMethod=http_method,
            )
        except Exception as e:
            raise self._fail("generate presigned URL", None, e) from e

    def generate_presigned_post(
        self,
        key: str,
        expires_in: int,
        fields: Optional[Mapping[str, Any]] = None,
        conditions: Optional[Sequence[Any]] = None,
    ) -> dict[str, Any]:
        try:
            return self._s3_client.generate_presigned_post(
                Bucket=self._bucket,
                Key=key,
                Fields=dict(fields) if fields else None,
                Conditions=list(conditions) if conditions else None,
                ExpiresIn=expires_in,
            )
        except Exception as e:
            raise self._fail("generate presigned POST", None, e) from e


def _error_code(error: Exception) -> Optional[str]:
    """Error code of a botocore ClientError, if it is one."""
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("Error", {}).get("Code")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageTransport:
    """
    In-memory storage for local development.

    This mock enables testing the full flow without provisioning real
    object storage. Objects live in a dictionary and presigned URLs are
    mock:// URIs that echo their parameters.

    clock_skew_seconds shifts the Date this "server" reports, so clock
    compensation can be exercised without a real remote.
    """

    def __init__(self, bucket_name: str = "mock-bucket", clock_skew_seconds: int = 0) -> None:
        self._bucket = bucket_name
        self._clock_skew_seconds = clock_skew_seconds
        self._objects: dict[str, tuple[bytes, Optional[str], dict[str, str]]] = {}
        self._lock = threading.Lock()
        self.probe_count = 0
        logger.info("Initialized mock storage transport (in-memory)")

    def head_bucket_date(self) -> str:
        with self._lock:
            self.probe_count += 1
        return formatdate(time.time() + self._clock_skew_seconds, usegmt=True)

    def put_object(
        self,
        key: str,
        body: Any,
        content_type: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Mapping[str, Any]:
        if hasattr(body, "read"):
            body = body.read()
        if isinstance(body, str):
            body = body.encode("utf-8")

        with self._lock:
            self._objects[key] = (bytes(body), content_type, dict(metadata or {}))

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(body)}
        )
        return {"Key": key}

    def get_object(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            return self._objects[key][0]

    def head_object(self, key: str) -> ObjectMetadata:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            data, content_type, metadata = self._objects[key]

        return ObjectMetadata(
            key=key,
            content_length=len(data),
            content_type=content_type,
            metadata=metadata,
        )

    def delete_object(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def delete_objects(self, keys: Sequence[str]) -> int:
        with self._lock:
            for key in keys:
                self._objects.pop(key, None)
        return len(keys)

    def copy_object(
        self,
        copy_source: str,
        key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Mapping[str, Any]:
        bucket, _, source_key = copy_source.partition("/")
        if bucket != self._bucket:
            raise StorageError(f"Copy across buckets not supported in mock: {bucket}")

        with self._lock:
            if source_key not in self._objects:
                raise ObjectNotFoundError(source_key)
            data, content_type, old_metadata = self._objects[source_key]
            new_metadata = dict(metadata) if metadata else dict(old_metadata)
            self._objects[key] = (data, content_type, new_metadata)

        return {"Key": key}

    def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        delimiter: Optional[str] = None,
    ) -> ListPage:
        with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
            sizes = {k: len(self._objects[k][0]) for k in keys}

        objects: list[ListedObject] = []
        prefixes: list[str] = []
        for key in keys:
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                common = prefix + rest.split(delimiter, 1)[0] + delimiter
                if common not in prefixes:
                    prefixes.append(common)
            else:
                objects.append(ListedObject(key=key, size=sizes[key]))

        return ListPage(objects=objects, common_prefixes=prefixes)

    def generate_presigned_url(
        self,
        operation: str,
        params: Mapping[str, Any],
        expires_in: int,
        http_method: Optional[str] = None,
    ) -> str:
        query = {k: v for k, v in sorted(params.items()) if k not in ("Bucket", "Key")}
        query["X-Mock-Expires"] = expires_in
        query["X-Mock-Method"] = http_method or "GET"
        return f"mock://{self._bucket}/{params['Key']}?{urlencode(query)}"

    def generate_presigned_post(
        self,
        key: str,
        expires_in: int,
        fields: Optional[Mapping[str, Any]] = None,
        conditions: Optional[Sequence[Any]] = None,
    ) -> dict[str, Any]:
        return {
            "url": f"mock://{self._bucket}",
            "fields": {**(fields or {}), "key": key, "x-mock-expires": str(expires_in)},
        }


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_transport(
    config: BucketConfig,
    mock_mode: bool = False,
    timeouts: Optional[TransportTimeouts] = None,
) -> StorageTransport:
    """
    Create a storage transport for a bucket configuration.

    Factory function pattern because:
    - Centralizes transport creation logic
    - Makes mock vs real decision explicit
    - Plugs straight into BucketRegistry as its transport factory

    Args:
        config: Validated bucket configuration
        mock_mode: If True, return an in-memory transport
        timeouts: Network bounds for the boto3 client

    Returns:
        StorageTransport implementation (boto3 or mock)
    """
    if mock_mode:
        return MockStorageTransport(bucket_name=config.bucket_name)

    return BotoStorageTransport(config, timeouts=timeouts)
