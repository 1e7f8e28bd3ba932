"""
Unit tests for the bucket registry.

Transports are in-memory; the factory counts how many handles get
built so the construct-once guarantee can be checked.
"""

import threading
import time

import pytest

from src.core.buckets import (
    Bucket,
    BucketConfig,
    BucketRegistry,
    InvalidConfig,
    NotConfigured,
    UnknownAlias,
)
from src.infrastructure.storage.client import MockStorageTransport


def make_config(bucket_name: str = "test-bucket", **overrides) -> BucketConfig:
    values = {
        "bucket_name": bucket_name,
        "region": "us-east-1",
        "access_key": "test-key",
        "secret_key": "test-secret",
    }
    values.update(overrides)
    return BucketConfig(**values)


class CountingFactory:
    """Transport factory that records every call."""

    def __init__(self, delay: float = 0.0) -> None:
        self.calls = 0
        self.delay = delay
        self._lock = threading.Lock()

    def __call__(self, config: BucketConfig) -> MockStorageTransport:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return MockStorageTransport(bucket_name=config.bucket_name)


@pytest.fixture
def factory() -> CountingFactory:
    return CountingFactory()


@pytest.fixture
def registry(factory) -> BucketRegistry:
    return BucketRegistry(transport_factory=factory)


class TestRegister:
    """Tests for registering configurations."""

    def test_register_stores_config(self, registry):
        registry.register("test", make_config())

        assert registry.has_config("test")
        assert "test" in registry
        assert registry.get_config("test").bucket_name == "test-bucket"

    def test_register_stamps_alias(self, registry):
        registry.register("media", make_config())
        assert registry.get_config("media").alias == "media"

    def test_register_keeps_root_prefix(self, registry):
        """Stamping the alias must not renormalize the prefix into a different one."""
        config = make_config(root_prefix="//x")

        registry.register("other", config)

        assert registry.get_config("other").root_prefix == config.root_prefix == "x"
        assert registry.resolve("other").path("a.txt") == "x/a.txt"

    def test_register_is_chainable(self, registry):
        assert registry.register("test", make_config()) is registry

    @pytest.mark.parametrize("alias", ["", "   "])
    def test_empty_alias_is_rejected(self, registry, alias):
        with pytest.raises(InvalidConfig, match="Alias cannot be empty"):
            registry.register(alias, make_config())

    def test_non_config_is_rejected(self, registry):
        with pytest.raises(InvalidConfig):
            registry.register("test", {"bucket": "test-bucket"})  # type: ignore[arg-type]

    def test_reregister_keeps_existing_handle(self, registry):
        """A built handle survives a config overwrite."""
        registry.register("test", make_config("first-bucket"))
        handle = registry.resolve("test")

        registry.register("test", make_config("second-bucket"))

        assert registry.get_config("test").bucket_name == "second-bucket"
        assert registry.resolve("test") is handle
        assert handle.bucket_name == "first-bucket"


class TestResolve:
    """Tests for resolving handles."""

    def test_resolve_builds_bucket(self, registry):
        registry.register("test", make_config())
        bucket = registry.resolve("test")

        assert isinstance(bucket, Bucket)
        assert bucket.bucket_name == "test-bucket"
        assert bucket.region == "us-east-1"

    def test_resolve_without_alias_uses_first_registered(self, registry):
        registry.register("default", make_config("first-bucket"))
        registry.register("other", make_config("second-bucket"))

        assert registry.resolve().bucket_name == "first-bucket"

    def test_resolve_with_nothing_registered(self, registry):
        with pytest.raises(NotConfigured, match="No storage configuration found"):
            registry.resolve()

    def test_resolve_unknown_alias(self, registry):
        registry.register("test", make_config())

        with pytest.raises(UnknownAlias, match="'invalid' not found") as exc_info:
            registry.resolve("invalid")
        assert exc_info.value.alias == "invalid"

    def test_get_config_unknown_alias(self, registry):
        with pytest.raises(UnknownAlias):
            registry.get_config("invalid")

    def test_handle_is_reused(self, registry, factory):
        registry.register("test", make_config())

        assert registry.resolve("test") is registry.resolve("test")
        assert factory.calls == 1

    def test_concurrent_first_access_builds_one_handle(self):
        factory = CountingFactory(delay=0.02)
        registry = BucketRegistry(transport_factory=factory)
        registry.register("test", make_config())
        barrier = threading.Barrier(10)
        handles = []

        def worker():
            barrier.wait()
            handles.append(registry.resolve("test"))

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert factory.calls == 1
        assert len({id(h) for h in handles}) == 1


class TestRemoveAndClear:
    """Tests for dropping configurations."""

    def test_buckets_lists_built_handles(self, registry):
        registry.register("test", make_config())
        assert registry.buckets() == {}

        registry.resolve("test")

        buckets = registry.buckets()
        assert list(buckets) == ["test"]
        assert isinstance(buckets["test"], Bucket)

    def test_remove_drops_config_and_handle(self, registry, factory):
        registry.register("test", make_config())
        registry.resolve("test")

        assert registry.remove("test") is registry
        assert not registry.has_config("test")
        assert registry.buckets() == {}

        registry.register("test", make_config())
        registry.resolve("test")
        assert factory.calls == 2

    def test_remove_unknown_alias_is_noop(self, registry):
        registry.remove("missing")
        assert len(registry) == 0

    def test_clear(self, registry):
        registry.register("test1", make_config("test-bucket-1"))
        registry.register("test2", make_config("test-bucket-2"))
        registry.resolve("test1")

        assert registry.clear() is registry
        assert not registry.has_config("test1")
        assert not registry.has_config("test2")
        assert registry.buckets() == {}
        with pytest.raises(NotConfigured):
            registry.resolve()

    def test_aliases_keep_registration_order(self, registry):
        for alias in ("b", "a", "c"):
            registry.register(alias, make_config())
        assert registry.aliases() == ["b", "a", "c"]
