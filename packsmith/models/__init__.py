"""Packsmith data models — all Pydantic v2, all frozen (immutable)."""

from packsmith.models.archive import (
    ARCHIVE_URL_PREFIX,
    Archive,
    ArchiveSource,
    ArchiveType,
    Checksum,
    ChecksumType,
)
from packsmith.models.function import Function, FunctionPackageRef, FunctionSpec, PackageRef
from packsmith.models.package import (
    BuildStatus,
    EnvironmentReference,
    ObjectMeta,
    Package,
    PackageCreateRequest,
    PackageSpec,
    PackageStatus,
    PackageUpdateRequest,
)
from packsmith.models.specs import ArchiveUploadSpec, SpecDocument, SpecKind

__all__ = [
    "ARCHIVE_URL_PREFIX",
    "Archive",
    "ArchiveSource",
    "ArchiveType",
    "ArchiveUploadSpec",
    "BuildStatus",
    "Checksum",
    "ChecksumType",
    "EnvironmentReference",
    "Function",
    "FunctionPackageRef",
    "FunctionSpec",
    "ObjectMeta",
    "Package",
    "PackageCreateRequest",
    "PackageRef",
    "PackageSpec",
    "PackageStatus",
    "PackageUpdateRequest",
    "SpecDocument",
    "SpecKind",
]
