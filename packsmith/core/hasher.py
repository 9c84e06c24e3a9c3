"""Content identity — SHA-256 checksums over archive bytes.

Checksums are computed by streaming fixed-size chunks so large archives
are never held in memory at once.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

from packsmith.models.archive import Checksum, ChecksumType

CHUNK_SIZE = 64 * 1024


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def stream_checksum(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Checksum:
    """Checksum everything remaining in a binary stream.

    Read errors propagate; no digest is returned for a partial read.
    """
    digest = hashlib.sha256()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        digest.update(chunk)
    return Checksum(type=ChecksumType.SHA256, sum=digest.hexdigest())


def file_checksum(path: Path | str) -> Checksum:
    """Checksum a file on disk."""
    with open(path, "rb") as fh:
        return stream_checksum(fh)
