"""Content-addressed identity for uploaded score files.

Hey future me - the hash is the dedup key for the whole library (scores.content_hash is
UNIQUE). It's MD5 hex because every score already in the database was stored with MD5 - switching
algorithms means rehashing every stored file, so don't "upgrade" this casually! MD5 is fine here:
we need identity, not collision resistance against an attacker.
"""

import hashlib
import re

CONTENT_HASH_LENGTH = 32

_CONTENT_HASH_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def compute_content_hash(data: bytes) -> str:
    """Return the lowercase hex MD5 digest of the raw bytes."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def is_content_hash(value: str) -> bool:
    """Check whether a string looks like a content hash we produced."""
    return bool(_CONTENT_HASH_PATTERN.match(value))
