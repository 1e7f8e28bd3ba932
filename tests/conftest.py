"""
Shared fixtures for the unit tests.

Everything here is offline: transports are in-memory and clocks are
fixed, so signed URLs are reproducible.
"""

from email.utils import formatdate
from typing import Optional

import pytest

from src.core.buckets import Bucket, BucketConfig, StorageError
from src.infrastructure.storage.client import MockStorageTransport


FIXED_NOW = 1_700_000_000


class FixedDateTransport(MockStorageTransport):
    """
    Mock transport whose server clock reads a fixed time.

    remote_epoch=None makes the clock probe fail instead.
    """

    def __init__(self, bucket_name: str, remote_epoch: Optional[int]) -> None:
        super().__init__(bucket_name=bucket_name)
        self._remote_epoch = remote_epoch

    def head_bucket_date(self) -> str:
        with self._lock:
            self.probe_count += 1
        if self._remote_epoch is None:
            raise StorageError("connection refused")
        return formatdate(self._remote_epoch, usegmt=True)


@pytest.fixture
def fixed_now() -> int:
    return FIXED_NOW


@pytest.fixture
def bucket_config() -> BucketConfig:
    return BucketConfig(
        alias="test",
        bucket_name="my-bucket",
        region="us-east-1",
        access_key="AK",
        secret_key="SK",
    )


@pytest.fixture
def make_bucket():
    """
    Build a Bucket on an in-memory transport with a frozen local clock.

    Args (of the returned factory):
        config: Bucket configuration.
        local_now: What the local wall clock reads.
        remote_now: What the server reports (None = probe fails).
        **bucket_kwargs: Passed through to Bucket (e.g. digest).
    """
    def _make(
        config: BucketConfig,
        local_now: int = FIXED_NOW,
        remote_now: Optional[int] = FIXED_NOW,
        **bucket_kwargs,
    ) -> Bucket:
        transport = FixedDateTransport(config.bucket_name, remote_now)
        return Bucket(config, transport, wall_clock=lambda: float(local_now), **bucket_kwargs)

    return _make
