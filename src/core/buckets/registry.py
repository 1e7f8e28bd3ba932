"""
Named bucket configurations and their handles.

A BucketRegistry maps aliases to validated configurations and builds
one Bucket handle per alias on first use. It is an ordinary object:
create one per application (the API layer keeps a cached instance) and
call clear() to reset it between tests.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional

from .bucket import Bucket
from .clock import DEFAULT_PROBE_TIMEOUT_SECONDS
from .errors import InvalidConfig, NotConfigured, UnknownAlias
from .models import BucketConfig
from .transport import StorageTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[BucketConfig], StorageTransport]


class BucketRegistry:
    """
    Alias -> configuration, and alias -> lazily built Bucket.

    Construction of a handle happens under the registry lock, so
    concurrent first access to an alias builds exactly one handle.
    Re-registering an alias replaces its configuration but leaves an
    existing handle alone; remove() the alias to rebuild it.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        clock_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self._transport_factory = transport_factory
        self._clock_timeout_seconds = clock_timeout_seconds
        self._configs: dict[str, BucketConfig] = {}
        self._buckets: dict[str, Bucket] = {}
        self._lock = threading.RLock()

    def register(self, alias: str, config: BucketConfig) -> "BucketRegistry":
        """Store config under alias (validated when config was built)."""
        if not alias or not alias.strip():
            raise InvalidConfig("Alias cannot be empty")
        if not isinstance(config, BucketConfig):
            raise InvalidConfig(
                f"Expected BucketConfig, got {type(config).__name__}"
            )

        if config.alias != alias:
            config = replace(config, alias=alias)

        with self._lock:
            self._configs[alias] = config

        logger.info(
            "Registered bucket configuration",
            extra={"alias": alias, "bucket": config.bucket_name, "region": config.region},
        )
        return self

    def resolve(self, alias: Optional[str] = None) -> Bucket:
        """
        Handle for alias, or for the first registered alias if omitted.

        Raises:
            NotConfigured: Nothing has been registered.
            UnknownAlias: alias has no configuration.
        """
        with self._lock:
            if not self._configs:
                raise NotConfigured(
                    "No storage configuration found. Register a bucket first."
                )

            if not alias:
                alias = next(iter(self._configs))

            config = self._configs.get(alias)
            if config is None:
                raise UnknownAlias(alias)

            bucket = self._buckets.get(alias)
            if bucket is None:
                bucket = Bucket(
                    config,
                    self._transport_factory(config),
                    clock_timeout_seconds=self._clock_timeout_seconds,
                )
                self._buckets[alias] = bucket

            return bucket

    def has_config(self, alias: str) -> bool:
        with self._lock:
            return alias in self._configs

    def get_config(self, alias: str) -> BucketConfig:
        with self._lock:
            try:
                return self._configs[alias]
            except KeyError:
                raise UnknownAlias(alias) from None

    def aliases(self) -> list[str]:
        """Registered aliases in registration order."""
        with self._lock:
            return list(self._configs)

    def buckets(self) -> dict[str, Bucket]:
        """Handles built so far (snapshot)."""
        with self._lock:
            return dict(self._buckets)

    def remove(self, alias: str) -> "BucketRegistry":
        with self._lock:
            self._configs.pop(alias, None)
            self._buckets.pop(alias, None)
        logger.debug("Removed bucket configuration", extra={"alias": alias})
        return self

    def clear(self) -> "BucketRegistry":
        with self._lock:
            self._configs.clear()
            self._buckets.clear()
        logger.debug("Cleared bucket registry")
        return self

    def __len__(self) -> int:
        with self._lock:
            return len(self._configs)

    def __contains__(self, alias: object) -> bool:
        with self._lock:
            return alias in self._configs
