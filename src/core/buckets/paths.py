"""
Object key composition under a bucket's root prefix.

Pure functions with no state. The composer does not detect a path that
has already been composed: applying it twice prepends the prefix twice.
Each call site composes exactly once.
"""

from typing import Optional


def normalize_root(prefix: str) -> str:
    """
    Trim whitespace and every leading and trailing slash.

    Idempotent: BucketConfig re-runs it on every dataclasses.replace.
    """
    return prefix.strip().strip("/")


def compose_path(
    relative_path: str,
    root_prefix: str = "",
    bucket_name: Optional[str] = None,
    include_bucket: bool = False,
) -> str:
    """
    Build the full object key for a path relative to the bucket root.

    The bucket-qualified form ("bucket/prefix/key") is what copy
    operations expect for their source reference.

    Examples:
        compose_path("/a.txt", "docs") -> "docs/a.txt"
        compose_path("a.txt", "docs", "media", include_bucket=True)
            -> "media/docs/a.txt"
    """
    path = relative_path.strip()

    if path.startswith("/"):
        path = path[1:]

    if root_prefix:
        path = f"{root_prefix}/{path}"

    if include_bucket:
        if not bucket_name:
            raise ValueError("bucket_name is required when include_bucket is True")
        path = f"{bucket_name}/{path}"

    return path
