"""
Bucket URL endpoints.

Exposes the URL engine over HTTP so clients that can't sign requests
themselves (browsers, mobile apps, other services) can ask for:
- public object URLs (CDN-aware)
- delegated presigned URLs (SigV4) for download, upload or delete
- legacy query-string signed GET URLs
- endpoint introspection for a configured bucket

Routes are synchronous on purpose: URL computation is CPU-bound and the
one network call (the clock probe) is blocking, so FastAPI runs these
in its threadpool.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.buckets import StorageError, UrlConstructionError
from ..dependencies import AuthenticatedUser, BucketDep, RegistryDep

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_EXPIRY_SECONDS = 7 * 24 * 3600  # SigV4 presigned URLs cap at one week


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class UrlResponse(BaseModel):
    """A computed URL."""
    url: str = Field(description="The resolved or signed URL")
    key: str = Field(description="Object path as requested (before root prefix)")
    expires_in: Optional[int] = Field(None, description="Lifetime in seconds for signed URLs")


class BucketListResponse(BaseModel):
    """Registered bucket aliases."""
    aliases: list[str] = Field(description="Aliases in registration order")


class BucketInfoResponse(BaseModel):
    """How a bucket's URLs are built."""
    alias: str
    bucket_name: str
    region: str
    endpoint_kind: str = Field(description="custom, accelerate or standard")
    endpoint_url: str = Field(description="Base endpoint URL")
    path_style: bool
    accelerate: bool
    cdn_url: Optional[str] = None
    root_prefix: str = ""


class CacheClearResponse(BaseModel):
    alias: str
    cleared: bool = True


def _url_error(e: Exception) -> HTTPException:
    logger.warning("URL construction failed", extra={"error": str(e)})
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=BucketListResponse,
    summary="List configured buckets",
)
def list_buckets(
    registry: RegistryDep,
    api_key: AuthenticatedUser,
) -> BucketListResponse:
    return BucketListResponse(aliases=registry.aliases())


@router.get(
    "/{alias}",
    response_model=BucketInfoResponse,
    summary="Describe a bucket's endpoint configuration",
)
def describe_bucket(
    bucket: BucketDep,
    api_key: AuthenticatedUser,
) -> BucketInfoResponse:
    return BucketInfoResponse(
        alias=bucket.alias,
        bucket_name=bucket.bucket_name,
        region=bucket.region,
        endpoint_kind=bucket.endpoint.kind.value,
        endpoint_url=bucket.endpoint_url(),
        path_style=bucket.uses_path_style,
        accelerate=bucket.uses_accelerate,
        cdn_url=bucket.cdn_url,
        root_prefix=bucket.root_prefix,
    )


@router.get(
    "/{alias}/urls/object",
    response_model=UrlResponse,
    summary="Public object URL",
    description="Unsigned URL, served from the CDN when one is configured.",
)
def object_url(
    bucket: BucketDep,
    api_key: AuthenticatedUser,
    key: str = Query(min_length=1, description="Object path relative to the bucket root"),
    https: bool = Query(True, description="Use https for direct endpoint URLs"),
    cdn: bool = Query(True, description="Prefer the CDN when configured"),
) -> UrlResponse:
    try:
        url = bucket.object_url(key, use_https=https, use_cdn=cdn)
    except (UrlConstructionError, ValueError) as e:
        raise _url_error(e)

    return UrlResponse(url=url, key=key)


@router.get(
    "/{alias}/urls/signed",
    response_model=UrlResponse,
    summary="Legacy signed GET URL",
    description="Query-string signed URL (AWSAccessKeyId/Expires/Signature), GET only.",
)
def legacy_signed_url(
    bucket: BucketDep,
    api_key: AuthenticatedUser,
    key: str = Query(min_length=1),
    expires_in: int = Query(3600, gt=0, le=MAX_EXPIRY_SECONDS),
    https: bool = Query(True),
) -> UrlResponse:
    try:
        url = bucket.legacy_signed_url(key, expires_in=expires_in, use_https=https)
    except (UrlConstructionError, ValueError) as e:
        raise _url_error(e)

    return UrlResponse(url=url, key=key, expires_in=expires_in)


@router.get(
    "/{alias}/urls/download",
    response_model=UrlResponse,
    summary="Presigned download URL",
    description="SigV4 presigned GET with an attachment Content-Disposition.",
)
def download_url(
    bucket: BucketDep,
    api_key: AuthenticatedUser,
    key: str = Query(min_length=1),
    expires_in: int = Query(3600, gt=0, le=MAX_EXPIRY_SECONDS),
    filename: Optional[str] = Query(None, description="Download filename (defaults to the key's basename)"),
    content_type: Optional[str] = Query(None, description="Override the response Content-Type"),
) -> UrlResponse:
    options = {}
    if filename:
        options["filename"] = filename
    if content_type:
        options["content_type"] = content_type

    try:
        url = bucket.download_url(key, expires_in=expires_in, options=options)
    except ValueError as e:
        raise _url_error(e)
    except StorageError as e:
        logger.error("Presigning failed", extra={"key": key, "error": str(e)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return UrlResponse(url=url, key=key, expires_in=expires_in)


@router.get(
    "/{alias}/urls/presigned",
    response_model=UrlResponse,
    summary="Presigned URL for an object operation",
)
def presigned_url(
    bucket: BucketDep,
    api_key: AuthenticatedUser,
    key: str = Query(min_length=1),
    expires_in: int = Query(3600, gt=0, le=MAX_EXPIRY_SECONDS),
    method: Literal["GET", "HEAD", "PUT", "DELETE"] = Query("GET"),
    content_type: Optional[str] = Query(None, description="Required Content-Type for PUT"),
) -> UrlResponse:
    options = {"ContentType": content_type} if content_type and method == "PUT" else None

    try:
        url = bucket.presigned_url(key, expires_in=expires_in, method=method, options=options)
    except ValueError as e:
        raise _url_error(e)
    except StorageError as e:
        logger.error("Presigning failed", extra={"key": key, "error": str(e)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return UrlResponse(url=url, key=key, expires_in=expires_in)


@router.post(
    "/{alias}/cache/clear",
    response_model=CacheClearResponse,
    summary="Clear the bucket's URL cache",
)
def clear_cache(
    bucket: BucketDep,
    api_key: AuthenticatedUser,
) -> CacheClearResponse:
    bucket.clear_url_cache()
    logger.info("URL cache cleared via API", extra={"alias": bucket.alias})
    return CacheClearResponse(alias=bucket.alias)
