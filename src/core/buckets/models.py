"""
Domain models for bucket configuration and endpoint selection.

These are plain frozen dataclasses with no knowledge of boto3, FastAPI or
environment variables. A BucketConfig is validated once when it is built,
so every other component can trust its fields without re-checking.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from .errors import InvalidConfig
from .paths import normalize_root


# Lowercase alphanumerics, dots and hyphens, starting and ending alphanumeric
BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9.-]*[a-z0-9])?$")

REGION_PATTERN = re.compile(r"^[a-z0-9-]+$")


class EndpointKind(Enum):
    """
    Which family of base URL a bucket resolves to.

    Exactly one applies per configuration. Priority is
    CUSTOM > ACCELERATE > STANDARD.
    """
    CUSTOM = "custom"
    ACCELERATE = "accelerate"
    STANDARD = "standard"


def _validate_http_url(field_name: str, value: str) -> str:
    """Check an optional URL setting and drop any trailing slash."""
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidConfig(
            f"{field_name} must be an absolute http(s) URL, got {value!r}"
        )
    return value.rstrip("/")


@dataclass(frozen=True)
class BucketConfig:
    """
    Everything needed to address one bucket.

    Frozen because a handle's bucket name, region and credentials must
    never change after construction. To change the CDN URL, build a new
    config with dataclasses.replace (which re-runs validation).

    Attributes:
        bucket_name: Bucket name (lowercase, dots and hyphens allowed).
        region: Region code such as "us-east-1".
        access_key: Access key ID used for signing.
        secret_key: Secret key used for signing. Never logged.
        alias: Registry alias this config was registered under.
        custom_endpoint: Explicit endpoint (e.g. a local emulator).
        cdn_url: CDN base URL used for public reads.
        use_path_style: Force https://host/bucket/key addressing.
        use_accelerate: Use the transfer-acceleration endpoint.
        root_prefix: Prefix prepended to every object key.
    """
    bucket_name: str
    region: str
    access_key: str
    secret_key: str
    alias: str = ""
    custom_endpoint: Optional[str] = None
    cdn_url: Optional[str] = None
    use_path_style: bool = False
    use_accelerate: bool = False
    root_prefix: str = ""

    def __post_init__(self) -> None:
        for field_name in ("bucket_name", "region", "access_key", "secret_key"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidConfig(f"Missing required configuration: {field_name}")

        if not BUCKET_NAME_PATTERN.match(self.bucket_name):
            raise InvalidConfig(f"Invalid bucket name: {self.bucket_name!r}")

        if not REGION_PATTERN.match(self.region):
            raise InvalidConfig(f"Invalid region: {self.region!r}")

        # frozen, so normalized values go through object.__setattr__
        if self.custom_endpoint:
            object.__setattr__(
                self,
                "custom_endpoint",
                _validate_http_url("custom_endpoint", self.custom_endpoint),
            )
        else:
            object.__setattr__(self, "custom_endpoint", None)

        if self.cdn_url:
            object.__setattr__(
                self, "cdn_url", _validate_http_url("cdn_url", self.cdn_url)
            )
        else:
            object.__setattr__(self, "cdn_url", None)

        object.__setattr__(self, "root_prefix", normalize_root(self.root_prefix or ""))

    def __repr__(self) -> str:
        # keep the secret out of logs and tracebacks
        return (
            f"BucketConfig(alias={self.alias!r}, bucket_name={self.bucket_name!r}, "
            f"region={self.region!r}, access_key={self.access_key[:4]!r}...)"
        )


@dataclass(frozen=True)
class EndpointDecision:
    """
    The base URL chosen for a bucket.

    base_url never has a trailing slash. When path_style is True the
    bucket name goes in the path rather than the host.
    """
    kind: EndpointKind
    base_url: str
    path_style: bool
