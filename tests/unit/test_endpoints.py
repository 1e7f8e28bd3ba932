"""
Unit tests for endpoint resolution and public URL construction.

Resolution is a pure function of the configuration, so these tests
build configs and inspect the decision and URLs directly.
"""

import itertools

import pytest

from src.core.buckets import (
    BucketConfig,
    EndpointKind,
    UrlConstructionError,
    public_url,
    resolve_endpoint,
)
from src.core.buckets.endpoints import (
    REGION_HOSTS,
    bucket_base_url,
    ensure_valid_url,
    region_host,
    with_scheme,
)


def make_config(**overrides) -> BucketConfig:
    values = {
        "bucket_name": "my-bucket",
        "region": "us-east-1",
        "access_key": "AK",
        "secret_key": "SK",
    }
    values.update(overrides)
    return BucketConfig(**values)


# ---------------------------------------------------------------------------
# Endpoint Decision Tests
# ---------------------------------------------------------------------------

class TestResolveEndpoint:
    """Tests for the Custom > Accelerate > Standard priority."""

    def test_standard_virtual_hosted(self):
        decision = resolve_endpoint(make_config())

        assert decision.kind is EndpointKind.STANDARD
        assert decision.base_url == "https://my-bucket.s3.us-east-1.amazonaws.com"
        assert not decision.path_style

    def test_standard_path_style(self):
        decision = resolve_endpoint(make_config(use_path_style=True))

        assert decision.kind is EndpointKind.STANDARD
        assert decision.base_url == "https://s3.us-east-1.amazonaws.com"
        assert decision.path_style

    def test_accelerate(self):
        decision = resolve_endpoint(make_config(use_accelerate=True))

        assert decision.kind is EndpointKind.ACCELERATE
        assert decision.base_url == "https://my-bucket.s3-accelerate.amazonaws.com"
        assert not decision.path_style

    def test_custom_endpoint_forces_path_style(self):
        decision = resolve_endpoint(make_config(custom_endpoint="http://localhost:4566"))

        assert decision.kind is EndpointKind.CUSTOM
        assert decision.base_url == "http://localhost:4566"
        assert decision.path_style

    @pytest.mark.parametrize(
        "custom,accelerate,path_style",
        list(itertools.product([None, "http://localhost:9000"], [False, True], [False, True])),
    )
    def test_priority_holds_for_every_flag_combination(self, custom, accelerate, path_style):
        """Exactly one kind applies, chosen by fixed priority."""
        config = make_config(
            custom_endpoint=custom,
            use_accelerate=accelerate,
            use_path_style=path_style,
        )
        decision = resolve_endpoint(config)

        if custom:
            expected = EndpointKind.CUSTOM
        elif accelerate:
            expected = EndpointKind.ACCELERATE
        else:
            expected = EndpointKind.STANDARD
        assert decision.kind is expected

    def test_cdn_does_not_change_the_decision(self):
        """CDN only affects public reads, not the endpoint."""
        plain = resolve_endpoint(make_config())
        with_cdn = resolve_endpoint(make_config(cdn_url="https://cdn.example.com"))
        assert plain == with_cdn

    def test_resolution_is_deterministic(self):
        config = make_config(use_path_style=True)
        assert resolve_endpoint(config) == resolve_endpoint(config)


class TestRegionHost:
    """Tests for the region endpoint table."""

    def test_known_region_uses_table(self):
        assert region_host("cn-north-1") == "s3.cn-north-1.amazonaws.com.cn"

    def test_unknown_region_uses_template(self):
        assert "xx-test-9" not in REGION_HOSTS
        assert region_host("xx-test-9") == "s3.xx-test-9.amazonaws.com"

    def test_china_region_standard_url(self):
        decision = resolve_endpoint(make_config(region="cn-northwest-1"))
        assert decision.base_url == "https://my-bucket.s3.cn-northwest-1.amazonaws.com.cn"


# ---------------------------------------------------------------------------
# Public URL Tests
# ---------------------------------------------------------------------------

class TestPublicUrl:
    """Tests for building unsigned object URLs."""

    def test_virtual_hosted_url(self):
        config = make_config()
        url = public_url(config, resolve_endpoint(config), "a/b.txt", use_cdn=False)
        assert url == "https://my-bucket.s3.us-east-1.amazonaws.com/a/b.txt"

    def test_path_style_url_includes_bucket(self):
        config = make_config(use_path_style=True)
        url = public_url(config, resolve_endpoint(config), "a/b.txt")
        assert url == "https://s3.us-east-1.amazonaws.com/my-bucket/a/b.txt"

    def test_custom_endpoint_url_includes_bucket(self):
        config = make_config(custom_endpoint="http://localhost:4566")
        url = public_url(config, resolve_endpoint(config), "a/b.txt")
        assert url == "http://localhost:4566/my-bucket/a/b.txt"

    def test_accelerate_url(self):
        config = make_config(use_accelerate=True)
        url = public_url(config, resolve_endpoint(config), "a/b.txt")
        assert url == "https://my-bucket.s3-accelerate.amazonaws.com/a/b.txt"

    def test_cdn_takes_precedence(self):
        """CDN wins over every endpoint kind when requested."""
        for extra in ({}, {"use_accelerate": True}, {"custom_endpoint": "http://localhost:4566"}):
            config = make_config(cdn_url="https://cdn.example.com", **extra)
            url = public_url(config, resolve_endpoint(config), "a/b.txt")
            assert url == "https://cdn.example.com/a/b.txt"

    def test_cdn_can_be_bypassed(self):
        config = make_config(cdn_url="https://cdn.example.com")
        url = public_url(config, resolve_endpoint(config), "a/b.txt", use_cdn=False)
        assert url.startswith("https://my-bucket.s3.us-east-1.amazonaws.com/")

    def test_http_scheme_for_standard_endpoint(self):
        config = make_config()
        url = public_url(config, resolve_endpoint(config), "a.txt", use_https=False)
        assert url == "http://my-bucket.s3.us-east-1.amazonaws.com/a.txt"

    def test_custom_endpoint_keeps_its_scheme(self):
        config = make_config(custom_endpoint="http://localhost:4566")
        decision = resolve_endpoint(config)
        assert with_scheme(decision, use_https=True) == "http://localhost:4566"

    def test_control_characters_in_key_are_rejected(self):
        config = make_config()
        with pytest.raises(UrlConstructionError):
            public_url(config, resolve_endpoint(config), "bad\nkey.txt")

    def test_space_in_key_is_rejected(self):
        config = make_config()
        with pytest.raises(UrlConstructionError, match="forbidden"):
            public_url(config, resolve_endpoint(config), "my file.txt")

    def test_bucket_base_url_for_path_style(self):
        config = make_config(use_path_style=True)
        assert (
            bucket_base_url(config, resolve_endpoint(config))
            == "https://s3.us-east-1.amazonaws.com/my-bucket"
        )


class TestEnsureValidUrl:
    """Tests for the URL validity guard."""

    def test_valid_url_passes_through(self):
        url = "https://example.com/a/b?c=d"
        assert ensure_valid_url(url) == url

    @pytest.mark.parametrize(
        "url",
        ["example.com/a", "ftp://example.com/a", "https:///a", "https://exa mple.com/"],
    )
    def test_invalid_urls_are_rejected(self, url):
        with pytest.raises(UrlConstructionError):
            ensure_valid_url(url)
