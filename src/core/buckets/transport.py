"""
Interface to the storage transport.

The URL engine never talks to the network itself. Object I/O, SigV4
presigning and the remote-time probe all go through a StorageTransport,
implemented in the infrastructure layer (boto3) or by an in-memory mock.

Errors raised by a transport are its own and pass through the bucket
handle untouched, with one exception: ObjectNotFoundError, which the
handle turns into a None return for read operations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when the requested object does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object not found: {key}")


@dataclass(frozen=True)
class ObjectMetadata:
    """What a HEAD request tells us about an object."""
    key: str
    content_length: int
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ListedObject:
    """One entry of a listing page."""
    key: str
    size: int


@dataclass(frozen=True)
class ListPage:
    """
    One page of a prefix listing.

    next_token is None on the last page.
    """
    objects: Sequence[ListedObject] = ()
    common_prefixes: Sequence[str] = ()
    next_token: Optional[str] = None


class StorageTransport(Protocol):
    """
    Operations the bucket handle delegates to.

    A transport is bound to one bucket. Keys passed in are already
    composed (root prefix applied).
    """

    def head_bucket_date(self) -> str:
        """Date header of a lightweight bucket request (remote time)."""
        ...

    def put_object(
        self,
        key: str,
        body: Any,
        content_type: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Mapping[str, Any]:
        """Upload an object."""
        ...

    def get_object(self, key: str) -> bytes:
        """Download an object. Raises ObjectNotFoundError if missing."""
        ...

    def head_object(self, key: str) -> ObjectMetadata:
        """Fetch object metadata. Raises ObjectNotFoundError if missing."""
        ...

    def delete_object(self, key: str) -> None:
        ...

    def delete_objects(self, keys: Sequence[str]) -> int:
        """Delete several objects, returning how many were requested."""
        ...

    def copy_object(
        self,
        copy_source: str,
        key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Mapping[str, Any]:
        """Copy from a bucket-qualified source ("bucket/key") to key."""
        ...

    def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        delimiter: Optional[str] = None,
    ) -> ListPage:
        ...

    def generate_presigned_url(
        self,
        operation: str,
        params: Mapping[str, Any],
        expires_in: int,
        http_method: Optional[str] = None,
    ) -> str:
        """Delegated (SigV4) presigned URL for a client operation."""
        ...

    def generate_presigned_post(
        self,
        key: str,
        expires_in: int,
        fields: Optional[Mapping[str, Any]] = None,
        conditions: Optional[Sequence[Any]] = None,
    ) -> dict[str, Any]:
        """Presigned POST form (url + fields) for browser uploads."""
        ...
