"""Archive models — the packaged code payload referenced by a package.

An archive is either embedded in the package record (``literal``) or stored
in the blob store and referenced by URL (``url``).  Remote archives carry a
SHA-256 checksum so the bytes can be verified after download.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator, model_validator

# Prefix of URLs that point at a declarative archive description rather than
# an uploaded blob.
ARCHIVE_URL_PREFIX = "archive://"


class ArchiveType(str, Enum):
    """How the archive payload is represented."""

    LITERAL = "literal"
    URL = "url"


class ChecksumType(str, Enum):
    SHA256 = "sha256"


class ArchiveSource(str, Enum):
    """Which of a package's two archives an operation targets."""

    SOURCE = "source"
    DEPLOYMENT = "deployment"


class Checksum(BaseModel):
    """Integrity proof for a remotely stored archive."""

    model_config = ConfigDict(frozen=True)

    type: ChecksumType = ChecksumType.SHA256
    sum: str


class Archive(BaseModel):
    """A packaged code payload.

    Exactly one of ``literal`` and ``url`` is populated, consistent with
    ``type``.  ``checksum`` is only meaningful for URL archives.

    Examples
    --------
    >>> Archive(type=ArchiveType.LITERAL, literal=b"print('hi')").is_literal
    True
    >>> Archive(type=ArchiveType.URL, url="https://example.com/a.zip").checksum is None
    True
    """

    model_config = ConfigDict(frozen=True)

    type: ArchiveType
    literal: bytes | None = None
    url: str = ""
    checksum: Checksum | None = None

    @model_validator(mode="before")
    @classmethod
    def _empty_literal(cls, data: Any) -> Any:
        # An empty literal payload is omitted from the wire entirely.
        if isinstance(data, dict) and data.get("type") == ArchiveType.LITERAL.value:
            if data.get("literal") is None:
                return {**data, "literal": b""}
        return data

    @field_validator("literal", mode="before")
    @classmethod
    def _decode_literal(cls, value: Any) -> Any:
        # The control plane sends literal payloads base64-encoded.
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_validator("checksum", mode="before")
    @classmethod
    def _drop_empty_checksum(cls, value: Any) -> Any:
        if isinstance(value, dict) and not value.get("sum"):
            return None
        return value

    @field_serializer("literal", when_used="json")
    def _encode_literal(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @model_validator(mode="after")
    def _check_payload(self) -> Archive:
        if self.type == ArchiveType.LITERAL:
            if self.literal is None or self.url:
                raise ValueError("literal archive must carry bytes and no url")
        elif not self.url or self.literal is not None:
            raise ValueError("url archive must carry a url and no literal bytes")
        return self

    @property
    def is_literal(self) -> bool:
        return self.type == ArchiveType.LITERAL

    @property
    def is_declarative(self) -> bool:
        """True when the URL names a recorded archive description."""
        return self.type == ArchiveType.URL and self.url.startswith(ARCHIVE_URL_PREFIX)

    @property
    def size_bytes(self) -> int | None:
        """Embedded payload size; ``None`` for remote archives."""
        return len(self.literal) if self.literal is not None else None


def is_unset_archive(value: Any) -> bool:
    """Return True for the server's zero-value archive object.

    The control plane serializes an absent archive as an object with an
    empty type and no payload; it is read back as "no archive".
    """
    if value is None:
        return True
    if isinstance(value, dict):
        return not value.get("type") and not value.get("literal") and not value.get("url")
    return False
