"""Archive transport — embed small archives, upload large ones.

``store`` decides by size: anything under the literal limit is embedded in
the package record; everything else goes to the blob store and is referenced
by an externally reachable URL plus a SHA-256 checksum of the same bytes.

``retrieve`` streams an archive back regardless of representation, and
``save`` writes it to disk atomically, verifying the checksum first.
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Iterator
from pathlib import Path

from packsmith.bridge.storage import StorageClient
from packsmith.config import ARCHIVE_LITERAL_SIZE_LIMIT
from packsmith.core.archive_builder import is_url
from packsmith.core.errors import ChecksumMismatchError, InputError
from packsmith.core.hasher import file_checksum
from packsmith.models.archive import Archive, ArchiveType

logger = logging.getLogger(__name__)


class ArchiveTransport:
    """Stores and retrieves archives.

    Parameters
    ----------
    storage:
        Blob store client used for archives at or above the literal limit.
    literal_size_limit:
        Files strictly smaller than this many bytes are embedded.
    """

    def __init__(
        self,
        storage: StorageClient,
        *,
        literal_size_limit: int = ARCHIVE_LITERAL_SIZE_LIMIT,
    ) -> None:
        self._storage = storage
        self._literal_size_limit = literal_size_limit

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store(self, location: str) -> Archive:
        """Turn an archive location into an ``Archive`` value.

        A URL location is referenced as-is (no upload, no checksum).  A local
        file is embedded or uploaded depending on its size.
        """
        if is_url(location):
            return Archive(type=ArchiveType.URL, url=location)

        path = Path(location)
        size = path.stat().st_size
        if size < self._literal_size_limit:
            logger.debug("Embedding %s (%d bytes) as literal archive", path, size)
            return Archive(type=ArchiveType.LITERAL, literal=path.read_bytes())

        archive_id = self._storage.upload(path)
        url = self._storage.url_for(archive_id)
        checksum = file_checksum(path)
        logger.info("Uploaded %s to %s (sha256=%s)", path, url, checksum.sum)
        return Archive(type=ArchiveType.URL, url=url, checksum=checksum)

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, archive: Archive) -> Iterator[bytes]:
        """Stream an archive's bytes.

        Literal archives yield their embedded bytes; URL archives are
        downloaded through the storage proxy.
        """
        if archive.is_literal:
            return iter([archive.literal or b""])
        if archive.is_declarative:
            raise InputError(f"archive {archive.url} is a declarative spec and has no content yet")
        return self._storage.download(archive.url)

    def save(self, archive: Archive, destination: Path) -> Path:
        """Write an archive to ``destination`` atomically.

        The bytes land in a temporary sibling first; when the archive carries
        a checksum it is verified before the file is moved into place.
        """
        destination = Path(destination)
        tmp_path = destination.with_name(destination.name + ".tmp")
        digest = hashlib.sha256()
        try:
            with open(tmp_path, "wb") as fh:
                for chunk in self.retrieve(archive):
                    digest.update(chunk)
                    fh.write(chunk)
            if archive.checksum is not None and digest.hexdigest() != archive.checksum.sum:
                raise ChecksumMismatchError(archive.url, archive.checksum.sum, digest.hexdigest())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, destination)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        logger.debug("Wrote archive to %s", destination)
        return destination
