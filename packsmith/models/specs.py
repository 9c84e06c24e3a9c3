"""Declarative artifact descriptions recorded in the spec directory."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from packsmith.models.archive import ARCHIVE_URL_PREFIX, Archive, ArchiveType
from packsmith.models.package import Package


class SpecKind(str, Enum):
    ARCHIVE_UPLOAD = "ArchiveUploadSpec"
    PACKAGE = "Package"


class ArchiveUploadSpec(BaseModel):
    """A recorded intent to build an archive from a set of globs.

    Two descriptions are the same artifact when their glob lists are equal;
    the name is only a label and file contents are never compared.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    include_globs: list[str] = Field(default_factory=list, alias="include")
    exclude_globs: list[str] = Field(default_factory=list, alias="exclude")

    def same_spec(self, other: ArchiveUploadSpec) -> bool:
        return (
            self.include_globs == other.include_globs
            and self.exclude_globs == other.exclude_globs
        )

    def as_archive(self) -> Archive:
        """The archive reference a package records for this description."""
        return Archive(type=ArchiveType.URL, url=f"{ARCHIVE_URL_PREFIX}{self.name}")


class SpecDocument(BaseModel):
    """One entry of a spec file: either an archive description or a package."""

    model_config = ConfigDict(frozen=True)

    kind: SpecKind
    archive: ArchiveUploadSpec | None = None
    package: Package | None = None
