"""In-memory control plane and blob store.

Both satisfy the bridge Protocols and behave like the real services where it
matters: every persisted mutation bumps ``resourceVersion``, a write carrying
a stale version is refused with ``StaleRevisionError``, and a missing record
or blob is a ``ResourceNotFoundError``.  Used by the test suite and for
offline dry runs.
"""

from __future__ import annotations

import itertools
import logging
import uuid
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import parse_qs, quote, urlsplit

from packsmith.core.errors import ConflictError, ResourceNotFoundError, StaleRevisionError
from packsmith.models.function import Function
from packsmith.models.package import BuildStatus, ObjectMeta, Package, PackageStatus

logger = logging.getLogger(__name__)

_Key = tuple[str, str]


class InMemoryController:
    """Dict-backed ``ControllerClient``."""

    def __init__(self, storage_service: str = "storagesvc.fission") -> None:
        self._packages: dict[_Key, Package] = {}
        self._functions: dict[_Key, Function] = {}
        self._revisions = itertools.count(1)
        self._storage_service = storage_service

    # -- Packages ----------------------------------------------------------

    def get_package(self, name: str, namespace: str) -> Package:
        return self._lookup(self._packages, "packages", name, namespace)

    def create_package(self, package: Package) -> ObjectMeta:
        key = (package.namespace, package.name)
        if key in self._packages:
            raise ConflictError(f"package {package.namespace}/{package.name} already exists")
        return self._put(self._packages, package).metadata

    def update_package(self, package: Package) -> ObjectMeta:
        current = self.get_package(package.name, package.namespace)
        self._check_revision("package", current.metadata, package.metadata)
        return self._put(self._packages, package).metadata

    def delete_package(self, name: str, namespace: str) -> None:
        self.get_package(name, namespace)
        del self._packages[(namespace, name)]

    def list_packages(self, namespace: str) -> list[Package]:
        return [p for (ns, _), p in sorted(self._packages.items()) if ns == namespace]

    # -- Functions ---------------------------------------------------------

    def create_function(self, function: Function) -> ObjectMeta:
        key = (function.metadata.namespace, function.name)
        if key in self._functions:
            raise ConflictError(f"function {key[0]}/{key[1]} already exists")
        return self._put(self._functions, function).metadata

    def get_function(self, name: str, namespace: str) -> Function:
        return self._lookup(self._functions, "functions", name, namespace)

    def update_function(self, function: Function) -> ObjectMeta:
        current = self.get_function(function.name, function.metadata.namespace)
        self._check_revision("function", current.metadata, function.metadata)
        return self._put(self._functions, function).metadata

    def list_functions(self, namespace: str) -> list[Function]:
        return [f for (ns, _), f in sorted(self._functions.items()) if ns == namespace]

    def service_url(self, selector: str) -> str:
        return self._storage_service

    # -- Build service stand-in -------------------------------------------

    def set_build_status(
        self, name: str, namespace: str, status: BuildStatus, log: str = ""
    ) -> ObjectMeta:
        """Advance a package's build status the way the build service would."""
        current = self.get_package(name, namespace)
        updated = current.model_copy(
            update={"status": PackageStatus(build_status=status, build_log=log)}
        )
        return self._put(self._packages, updated).metadata

    # -- Internals ---------------------------------------------------------

    def _lookup(self, table: dict, kind: str, name: str, namespace: str):
        try:
            return table[(namespace, name)]
        except KeyError:
            raise ResourceNotFoundError(
                f"memory://{kind}/{namespace}/{name}", 404, f"{kind} {namespace}/{name} not found"
            ) from None

    @staticmethod
    def _check_revision(kind: str, stored: ObjectMeta, incoming: ObjectMeta) -> None:
        if incoming.resource_version and incoming.resource_version != stored.resource_version:
            raise StaleRevisionError(
                kind,
                stored.name,
                stored.namespace,
                f"have {incoming.resource_version}, server at {stored.resource_version}",
            )

    def _put(self, table: dict, record):
        meta = record.metadata.model_copy(
            update={"resource_version": str(next(self._revisions))}
        )
        stored = record.model_copy(update={"metadata": meta})
        table[(meta.namespace, meta.name)] = stored
        return stored


class InMemoryStorage:
    """Dict-backed ``StorageClient``; records every upload."""

    def __init__(self, external_url: str = "http://storagesvc.fission") -> None:
        self._external = external_url.rstrip("/")
        self._blobs: dict[str, bytes] = {}
        self.uploads: list[str] = []

    def upload(self, path: Path) -> str:
        archive_id = str(uuid.uuid4())
        self._blobs[archive_id] = Path(path).read_bytes()
        self.uploads.append(archive_id)
        logger.debug("Stored %s as blob %s", path, archive_id)
        return archive_id

    def url_for(self, archive_id: str) -> str:
        return f"{self._external}/v1/archive?id={quote(archive_id, safe='')}"

    def download(self, url: str) -> Iterator[bytes]:
        archive_id = parse_qs(urlsplit(url).query).get("id", [""])[0]
        if archive_id not in self._blobs:
            raise ResourceNotFoundError(url, 404, "download from storage service")
        yield self._blobs[archive_id]
