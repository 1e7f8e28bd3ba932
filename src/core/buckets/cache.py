"""
Memoization for computed object URLs.

Entries never expire on their own: a signed URL carries its own
expiry, and the cache only guarantees that repeated requests for the
same inputs return the same string. Callers clear the whole cache when
configuration changes (for example a new CDN URL).
"""

import hashlib
import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional


@dataclass(frozen=True)
class UrlCacheKey:
    """
    Every input that can change a computed URL.

    Public URLs put their scheme and CDN choice in the options; signed
    URLs put their method-specific parameters there.
    """
    operation: str
    object_key: str
    expires_in: int = 0
    method: str = "GET"
    options_fingerprint: str = ""


def fingerprint_options(options: Optional[Mapping[str, Any]]) -> str:
    """Stable digest of an option mapping (key order doesn't matter)."""
    if not options:
        return ""
    encoded = json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class UrlCache:
    """Thread-safe map of UrlCacheKey to URL string."""

    def __init__(self) -> None:
        self._entries: dict[UrlCacheKey, str] = {}
        self._lock = threading.Lock()

    def get_or_compute(self, key: UrlCacheKey, compute: Callable[[], str]) -> str:
        """
        Return the cached URL for key, computing and storing it on a miss.

        compute runs outside the lock. If two threads miss at once, the
        first value stored wins and both callers get it.
        """
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            return cached

        value = compute()

        with self._lock:
            return self._entries.setdefault(key, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
