"""
Endpoint resolution for bucket URLs.

Decides which base URL a bucket uses, then builds public object URLs on
top of it. Resolution is deterministic and evaluated once per
configuration:

1. custom_endpoint set   -> CUSTOM (always path-style; emulators such as
                            LocalStack or MinIO don't do virtual hosts)
2. use_accelerate        -> ACCELERATE (bucket.s3-accelerate.amazonaws.com)
3. otherwise             -> STANDARD (regional host from REGION_HOSTS,
                            path-style only when the config asks for it)

Public reads prefer the CDN when one is configured, whatever the
endpoint decision says.
"""

import re
from urllib.parse import urlsplit, urlunsplit

from .errors import UrlConstructionError
from .models import BucketConfig, EndpointDecision, EndpointKind


ACCELERATE_HOST_TEMPLATE = "{bucket}.s3-accelerate.amazonaws.com"

DEFAULT_HOST_TEMPLATE = "s3.{region}.amazonaws.com"

# Canonical S3 hosts for known regions. Regions outside the table use
# DEFAULT_HOST_TEMPLATE, which is correct for every commercial region;
# the table exists for the partitions that differ (China, GovCloud).
REGION_HOSTS: dict[str, str] = {
    "us-east-1": "s3.us-east-1.amazonaws.com",
    "us-east-2": "s3.us-east-2.amazonaws.com",
    "us-west-1": "s3.us-west-1.amazonaws.com",
    "us-west-2": "s3.us-west-2.amazonaws.com",
    "ca-central-1": "s3.ca-central-1.amazonaws.com",
    "sa-east-1": "s3.sa-east-1.amazonaws.com",
    "eu-west-1": "s3.eu-west-1.amazonaws.com",
    "eu-west-2": "s3.eu-west-2.amazonaws.com",
    "eu-west-3": "s3.eu-west-3.amazonaws.com",
    "eu-central-1": "s3.eu-central-1.amazonaws.com",
    "eu-north-1": "s3.eu-north-1.amazonaws.com",
    "eu-south-1": "s3.eu-south-1.amazonaws.com",
    "ap-south-1": "s3.ap-south-1.amazonaws.com",
    "ap-northeast-1": "s3.ap-northeast-1.amazonaws.com",
    "ap-northeast-2": "s3.ap-northeast-2.amazonaws.com",
    "ap-northeast-3": "s3.ap-northeast-3.amazonaws.com",
    "ap-southeast-1": "s3.ap-southeast-1.amazonaws.com",
    "ap-southeast-2": "s3.ap-southeast-2.amazonaws.com",
    "ap-east-1": "s3.ap-east-1.amazonaws.com",
    "me-south-1": "s3.me-south-1.amazonaws.com",
    "af-south-1": "s3.af-south-1.amazonaws.com",
    "cn-north-1": "s3.cn-north-1.amazonaws.com.cn",
    "cn-northwest-1": "s3.cn-northwest-1.amazonaws.com.cn",
    "us-gov-west-1": "s3.us-gov-west-1.amazonaws.com",
    "us-gov-east-1": "s3.us-gov-east-1.amazonaws.com",
}

# Whitespace and control characters are never valid unescaped in a URL
_FORBIDDEN_URL_CHARS = re.compile(r"[\x00-\x20\x7f]")


def region_host(region: str) -> str:
    """Look up the canonical S3 host for a region."""
    return REGION_HOSTS.get(region, DEFAULT_HOST_TEMPLATE.format(region=region))


def resolve_endpoint(config: BucketConfig) -> EndpointDecision:
    """Pick the base endpoint for a bucket configuration."""
    if config.custom_endpoint:
        return EndpointDecision(
            kind=EndpointKind.CUSTOM,
            base_url=config.custom_endpoint,
            path_style=True,
        )

    if config.use_accelerate:
        host = ACCELERATE_HOST_TEMPLATE.format(bucket=config.bucket_name)
        return EndpointDecision(
            kind=EndpointKind.ACCELERATE,
            base_url=f"https://{host}",
            path_style=False,
        )

    host = region_host(config.region)
    if config.use_path_style:
        return EndpointDecision(
            kind=EndpointKind.STANDARD,
            base_url=f"https://{host}",
            path_style=True,
        )

    return EndpointDecision(
        kind=EndpointKind.STANDARD,
        base_url=f"https://{config.bucket_name}.{host}",
        path_style=False,
    )


def with_scheme(decision: EndpointDecision, use_https: bool) -> str:
    """
    Base URL for the decision with the requested scheme.

    Custom endpoints keep the scheme they were configured with: an
    emulator on http://localhost:4566 doesn't speak TLS just because the
    caller asked for https.
    """
    if decision.kind is EndpointKind.CUSTOM:
        return decision.base_url

    parts = urlsplit(decision.base_url)
    scheme = "https" if use_https else "http"
    return urlunsplit((scheme, parts.netloc, parts.path, "", ""))


def bucket_base_url(
    config: BucketConfig,
    decision: EndpointDecision,
    use_https: bool = True,
) -> str:
    """Base URL that object keys are appended to (bucket segment included)."""
    base = with_scheme(decision, use_https)
    if decision.path_style:
        return f"{base}/{config.bucket_name}"
    return base


def ensure_valid_url(url: str) -> str:
    """Raise UrlConstructionError unless url is an absolute http(s) URL."""
    match = _FORBIDDEN_URL_CHARS.search(url)
    if match:
        raise UrlConstructionError(
            url, f"contains forbidden character {match.group()!r}"
        )

    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise UrlConstructionError(url, str(e)) from e

    if parts.scheme not in ("http", "https"):
        raise UrlConstructionError(url, "scheme must be http or https")
    if not parts.netloc:
        raise UrlConstructionError(url, "missing host")

    return url


def public_url(
    config: BucketConfig,
    decision: EndpointDecision,
    composed_key: str,
    use_https: bool = True,
    use_cdn: bool = True,
) -> str:
    """
    Public (unsigned) URL for an already-composed object key.

    CDN wins when configured and requested. Otherwise the key is
    appended to the bucket base URL for the endpoint decision.
    """
    if use_cdn and config.cdn_url:
        url = f"{config.cdn_url}/{composed_key}"
    else:
        url = f"{bucket_base_url(config, decision, use_https)}/{composed_key}"

    return ensure_valid_url(url)
