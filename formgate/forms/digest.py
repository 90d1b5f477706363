"""Content digests for uploaded files."""

import hashlib

from beartype import beartype


@beartype
def content_digest(content: bytes) -> str:
    """Return the lower-case hex SHA-256 of ``content``."""
    return hashlib.sha256(content).hexdigest()
