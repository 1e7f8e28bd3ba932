"""
Error types for bucket configuration and URL resolution.

Configuration problems fail fast at registration time. Resolution
problems surface to the caller. Clock-sync failures never appear here
because they degrade to a zero offset instead of raising.

Transport errors (object not found, permission denied) are defined in
the storage infrastructure and pass through unchanged.
"""


class BucketError(Exception):
    """Base class for bucket configuration and URL errors."""
    pass


class InvalidConfig(BucketError, ValueError):
    """Raised when a bucket configuration is missing or malformed."""
    pass


class NotConfigured(BucketError):
    """Raised when a bucket is requested but nothing is registered."""
    pass


class UnknownAlias(BucketError, LookupError):
    """Raised when no configuration exists for the requested alias."""

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f"Storage configuration for alias '{alias}' not found")


class UrlConstructionError(BucketError):
    """Raised when a resolved URL is not a valid absolute URL."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")
