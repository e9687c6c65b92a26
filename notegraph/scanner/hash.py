"""Content fingerprints for change detection."""

import hashlib
from pathlib import Path

CHUNK_SIZE = 1 << 16


def hash_bytes(data: bytes) -> str:
    return hashlib.blake2b(data, digest_size=8).hexdigest()


def hash_file(path: Path) -> str:
    """64-bit BLAKE2b digest of the file bytes, as 16 hex characters.

    Only used to notice that a file changed, never as an identity.
    """
    digest = hashlib.blake2b(digest_size=8)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
