"""Typed error hierarchy for package operations.

Every failure is raised to the immediate caller carrying the identity it is
about (name, namespace, path, URL).  Nothing in the library exits the
process; the CLI decides how a failure is reported.

::

    PacksmithError
    ├── InputError            bad arguments, zero glob matches
    │   └── NoMatchingFilesError
    ├── ConflictError         caller must re-issue with corrected intent
    │   ├── StaleRevisionError
    │   ├── SharedPackageError
    │   ├── PackageInUseError
    │   └── BuildStateError
    ├── TransportError        remote store unreachable or refused
    │   ├── RemoteStatusError
    │   │   └── ResourceNotFoundError
    │   └── ChecksumMismatchError
    ├── FunctionSyncError     package committed, fan-out partially failed
    └── OrphanSweepError
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from packsmith.models.package import BuildStatus, ObjectMeta


class PacksmithError(RuntimeError):
    """Base class for all package operation failures."""


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(PacksmithError):
    """Raised for missing, malformed or mutually exclusive arguments."""


class NoMatchingFilesError(InputError):
    """Raised when one or more input globs match no files."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self.patterns = list(patterns)
        detail = "; ".join(f'Error finding any files with path "{p}"' for p in self.patterns)
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Conflict errors
# ---------------------------------------------------------------------------


class ConflictError(PacksmithError):
    """Raised when the requested change conflicts with the current state."""


class StaleRevisionError(ConflictError):
    """Raised when a write targets a resource version the server has moved past."""

    def __init__(self, kind: str, name: str, namespace: str, detail: str = "") -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        message = f"{kind} {namespace}/{name} was modified concurrently"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SharedPackageError(ConflictError):
    """Raised when updating a package used by several functions without force."""

    def __init__(self, name: str, namespace: str, functions: Sequence[str]) -> None:
        self.name = name
        self.namespace = namespace
        self.functions = list(functions)
        super().__init__(
            f"Package {namespace}/{name} is used by multiple functions "
            f"({', '.join(self.functions)}), use force to update"
        )


class PackageInUseError(ConflictError):
    """Raised when deleting a package that functions still reference."""

    def __init__(self, name: str, namespace: str, functions: Sequence[str]) -> None:
        self.name = name
        self.namespace = namespace
        self.functions = list(functions)
        super().__init__(
            f"Package {namespace}/{name} is used by at least one function "
            f"({', '.join(self.functions)}), use force to delete"
        )


class BuildStateError(ConflictError):
    """Raised when a rebuild is requested for a package that has not failed."""

    def __init__(self, name: str, namespace: str, status: BuildStatus) -> None:
        self.name = name
        self.namespace = namespace
        self.status = status
        super().__init__(
            f"Package {namespace}/{name} is not in failed state (current: {status.value})"
        )


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class TransportError(PacksmithError):
    """Raised when the control plane or blob store cannot be reached or
    answers with a body that does not parse.
    """


class RemoteStatusError(TransportError):
    """Raised for a non-success HTTP response."""

    def __init__(self, url: str, status_code: int, detail: str = "") -> None:
        self.url = url
        self.status_code = status_code
        message = f"{url}: HTTP response returned non-success status {status_code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ResourceNotFoundError(RemoteStatusError):
    """Raised when the control plane has no record with the given identity."""


class ChecksumMismatchError(TransportError):
    """Raised when downloaded bytes do not hash to the recorded checksum."""

    def __init__(self, url: str, expected: str, actual: str) -> None:
        self.url = url
        self.expected = expected
        self.actual = actual
        super().__init__(f"checksum mismatch for {url}: expected {expected}, got {actual}")


# ---------------------------------------------------------------------------
# Multi-step operation errors
# ---------------------------------------------------------------------------


class FunctionSyncError(PacksmithError):
    """Raised when the package update committed but some functions were not re-pinned.

    The package write is not rolled back; ``package`` is the committed
    metadata and ``failures`` maps function name to the error it hit.
    """

    def __init__(self, package: ObjectMeta, failures: Mapping[str, Exception]) -> None:
        self.package = package
        self.failures = dict(failures)
        names = ", ".join(sorted(self.failures))
        super().__init__(
            f"Package {package.namespace}/{package.name} updated to revision "
            f"{package.resource_version}, but functions failed to sync: {names}"
        )


class OrphanSweepError(PacksmithError):
    """Raised when the orphan sweep stops at a failed deletion."""

    def __init__(
        self,
        namespace: str,
        deleted: Sequence[str],
        failed: str,
        cause: Exception,
    ) -> None:
        self.namespace = namespace
        self.deleted = list(deleted)
        self.failed = failed
        self.cause = cause
        super().__init__(
            f"error deleting orphan package {namespace}/{failed}: {cause} "
            f"(already deleted: {', '.join(self.deleted) or 'none'})"
        )
