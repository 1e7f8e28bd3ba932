"""
Legacy query-string signing for time-limited GET URLs.

Implements the signature version 2 S3 query-string authentication scheme
(AWSAccessKeyId / Expires / Signature). It is deliberately narrow: only
simple GET/HEAD downloads are signed here. Everything else, including
SigV4 presigning, goes through the storage transport.

The string to sign is:

    {METHOD}\\n{Content-MD5}\\n{Content-Type}\\n{Expires}\\n/{bucket}/{key}

with Content-MD5 and Content-Type left empty. The signature is
base64(HMAC-SHA1(secret, string_to_sign)).
"""

import base64
import hashlib
import hmac
from typing import Callable
from urllib.parse import quote, quote_plus

from .clock import ClockSynchronizer


SHA1_BLOCK_SIZE = 64

LEGACY_METHODS = frozenset({"GET", "HEAD"})

Digest = Callable[[bytes, bytes], bytes]


def encode_object_key(key: str) -> str:
    """
    Percent-encode a key, keeping "/" and "+" literal.

    Slashes stay as path separators. Encoding follows RFC 3986, so only
    A-Z a-z 0-9 - _ . ~ are left unescaped otherwise.
    """
    return quote(key, safe="").replace("%2F", "/").replace("%2B", "+")


def string_to_sign(method: str, expires: int, bucket_name: str, composed_key: str) -> str:
    """Canonical string for the legacy scheme."""
    return f"{method.upper()}\n\n\n{expires}\n/{bucket_name}/{composed_key}"


def hmac_sha1(secret: bytes, message: bytes) -> bytes:
    """HMAC-SHA1 via the standard hmac module."""
    return hmac.new(secret, message, hashlib.sha1).digest()


def portable_hmac_sha1(secret: bytes, message: bytes) -> bytes:
    """
    HMAC-SHA1 built from two plain SHA1 passes.

    Produces exactly the same bytes as hmac_sha1. Used where an HMAC
    primitive isn't available but SHA1 is.
    """
    if len(secret) > SHA1_BLOCK_SIZE:
        secret = hashlib.sha1(secret).digest()
    key = secret.ljust(SHA1_BLOCK_SIZE, b"\x00")

    inner_pad = bytes(b ^ 0x36 for b in key)
    outer_pad = bytes(b ^ 0x5C for b in key)

    inner = hashlib.sha1(inner_pad + message).digest()
    return hashlib.sha1(outer_pad + inner).digest()


class LegacySigner:
    """
    Signs object URLs for one bucket with the legacy scheme.

    Pure given a fixed clock: the same method, key and expiry produce the
    same URL within one second. Callers that need stable URLs across
    calls go through the URL cache.
    """

    def __init__(
        self,
        bucket_name: str,
        access_key: str,
        secret_key: str,
        clock: ClockSynchronizer,
        digest: Digest = hmac_sha1,
    ) -> None:
        self._bucket_name = bucket_name
        self._access_key = access_key
        self._secret = secret_key.encode("utf-8")
        self._clock = clock
        self._digest = digest

    def signature(self, canonical: str) -> str:
        """base64 signature of a canonical string (not yet URL-encoded)."""
        raw = self._digest(self._secret, canonical.encode("utf-8"))
        return base64.b64encode(raw).decode("ascii")

    def sign(
        self,
        base_url: str,
        composed_key: str,
        expires_in: int,
        method: str = "GET",
    ) -> str:
        """
        Render a complete signed URL.

        Args:
            base_url: Bucket base URL (bucket segment already included for
                path-style endpoints).
            composed_key: Encoded key with the root prefix applied.
            expires_in: Lifetime in seconds from the remote "now".
            method: GET or HEAD.
        """
        method = method.upper()
        if method not in LEGACY_METHODS:
            raise ValueError(
                f"Legacy signing supports only GET and HEAD, got {method}"
            )
        if expires_in <= 0:
            raise ValueError("expires_in must be positive")

        expires = self._clock.now() + expires_in
        canonical = string_to_sign(method, expires, self._bucket_name, composed_key)
        signature = quote_plus(self.signature(canonical), safe="")

        return (
            f"{base_url}/{composed_key}"
            f"?AWSAccessKeyId={self._access_key}"
            f"&Expires={expires}"
            f"&Signature={signature}"
        )
