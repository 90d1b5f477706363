"""MIME policy for uploaded files."""

from collections.abc import Collection

from beartype import beartype


@beartype
def is_allowed_mime_type(content_type: str, allowed: Collection[str]) -> bool:
    """Check a declared upload type against the allow-list.

    Matching is exact and case-sensitive. An empty allow-list rejects every
    upload.
    """
    if not allowed:
        return False
    return content_type in allowed
