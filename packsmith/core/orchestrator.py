"""Package orchestrator — the operations packsmith exposes to its callers.

The orchestrator wires the control-plane and blob-store clients, the
archive builder and transport, the spec registry, the package record
manager and the function synchronizer from one explicit ``ClientConfig``.
Collaborators can be injected, which is how tests run against the
in-memory backends.

It adds the policy that spans several records: force flags for shared or
referenced packages, the fan-out of a new package revision to the functions
that use it, and the orphan sweep.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from packsmith.bridge.controller import ControllerClient, HttpControllerClient
from packsmith.bridge.storage import HttpStorageClient, StorageClient
from packsmith.config import ClientConfig
from packsmith.core.archive_builder import ArchiveBuilder
from packsmith.core.archive_transport import ArchiveTransport
from packsmith.core.errors import (
    FunctionSyncError,
    InputError,
    OrphanSweepError,
    PackageInUseError,
    PacksmithError,
    SharedPackageError,
)
from packsmith.core.function_sync import FunctionSynchronizer, SyncReport
from packsmith.core.package_manager import PackageManager
from packsmith.core.spec_registry import SpecRegistry
from packsmith.models.archive import Archive, ArchiveSource
from packsmith.models.package import (
    ObjectMeta,
    Package,
    PackageCreateRequest,
    PackageUpdateRequest,
)

logger = logging.getLogger(__name__)


class PackageUpdateResult(BaseModel):
    """A committed package revision and the fan-out that followed it."""

    model_config = ConfigDict(frozen=True)

    package: ObjectMeta
    sync: SyncReport


class PackageOrchestrator:
    """Entry point for package operations.

    Parameters
    ----------
    config:
        Client configuration.  Uses defaults (and PACKSMITH_* env vars) if
        not provided.
    controller:
        Control-plane client.  An ``HttpControllerClient`` for
        ``config.server_url`` is created when omitted.
    storage:
        Blob store client.  An ``HttpStorageClient`` on the controller's
        storage proxy is created when omitted.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        controller: ControllerClient | None = None,
        storage: StorageClient | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._owned: list[HttpControllerClient | HttpStorageClient] = []

        if controller is None:
            http_controller = HttpControllerClient(
                self.config.server_url, timeout=self.config.http_timeout_seconds
            )
            self._owned.append(http_controller)
            controller = http_controller
        if storage is None:
            http_storage = HttpStorageClient(
                self.config.storage_proxy_url,
                self.config.storage_external_url,
                resolve_external=self._discover_storage,
                timeout=self.config.http_timeout_seconds,
            )
            self._owned.append(http_storage)
            storage = http_storage

        self.controller = controller
        self.registry = SpecRegistry(self.config.spec_dir)
        self.builder = ArchiveBuilder(self.registry)
        self.transport = ArchiveTransport(
            storage, literal_size_limit=self.config.literal_size_limit
        )
        self.packages = PackageManager(
            controller,
            self.builder,
            self.transport,
            registry=self.registry,
            scratch_dir=self.config.scratch_dir,
        )
        self.synchronizer = FunctionSynchronizer(controller)

    def _discover_storage(self) -> str:
        return "http://" + self.controller.service_url(self.config.storage_service_selector)

    def close(self) -> None:
        for client in self._owned:
            client.close()

    def __enter__(self) -> PackageOrchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Create / rebuild / update
    # ------------------------------------------------------------------

    def build_package(self, request: PackageCreateRequest) -> ObjectMeta:
        """Create a package (or record it, in declarative mode)."""
        return self.packages.create(request)

    def rebuild_package(self, name: str, namespace: str) -> ObjectMeta:
        """Retry a failed build; any other status is a ``BuildStateError``."""
        return self.packages.rebuild(name, namespace)

    def update_package(
        self,
        name: str,
        namespace: str,
        request: PackageUpdateRequest,
        *,
        force: bool = False,
    ) -> PackageUpdateResult:
        """Update a package and re-pin every function that references it.

        Raises
        ------
        InputError
            Both source and deployment inputs given, or nothing to change.
        SharedPackageError
            More than one function references the package and ``force`` is
            not set.
        FunctionSyncError
            The package revision was committed but some functions could not
            be re-pinned.  The package update is not rolled back.
        """
        if request.src_files and request.deploy_files:
            raise InputError("Need either of --src or --deploy and not both arguments.")
        if request.is_empty:
            raise InputError("Need --env or --src or --deploy or --buildcmd argument.")

        package = self.packages.get(name, namespace)
        functions = self.synchronizer.functions_referencing(package.name, package.namespace)
        if not force and len(functions) > 1:
            raise SharedPackageError(name, namespace, [fn.name for fn in functions])

        meta = self.packages.update(package, request)
        logger.info("Package '%s' updated (rv=%s)", meta.name, meta.resource_version)

        if meta.resource_version == package.metadata.resource_version:
            report = SyncReport(resource_version=meta.resource_version)
        else:
            report = self.synchronizer.propagate(functions, meta.resource_version)
        if not report.ok:
            raise FunctionSyncError(meta, report.failures)
        return PackageUpdateResult(package=meta, sync=report)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_package(self, name: str, namespace: str, *, force: bool = False) -> None:
        """Delete a package, refusing while functions reference it unless forced."""
        self.packages.get(name, namespace)
        functions = self.synchronizer.functions_referencing(name, namespace)
        if functions and not force:
            raise PackageInUseError(name, namespace, [fn.name for fn in functions])
        self.packages.delete(name, namespace)
        logger.info("Package '%s' deleted", name)

    def delete_orphan_packages(self, namespace: str) -> list[str]:
        """Delete every package in ``namespace`` that no function references.

        Stops at the first failure and raises ``OrphanSweepError`` listing
        the packages already deleted.
        """
        deleted: list[str] = []
        for package in self.packages.list_packages(namespace):
            try:
                if self.synchronizer.functions_referencing(package.name, namespace):
                    continue
                self.packages.delete(package.name, namespace)
            except PacksmithError as exc:
                raise OrphanSweepError(namespace, deleted, package.name, exc) from exc
            deleted.append(package.name)
        logger.info("Deleted %d orphan package(s) in %s", len(deleted), namespace)
        return deleted

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def package_info(self, name: str, namespace: str) -> Package:
        return self.packages.get(name, namespace)

    def list_packages(self, namespace: str, *, orphans_only: bool = False) -> list[Package]:
        packages = self.packages.list_packages(namespace)
        if not orphans_only:
            return packages
        referenced = self.synchronizer.referenced_packages(namespace)
        return [p for p in packages if p.name not in referenced]

    # ------------------------------------------------------------------
    # Archive content
    # ------------------------------------------------------------------

    def fetch_archive(self, name: str, namespace: str, which: ArchiveSource) -> Iterator[bytes]:
        """Stream the source or deployment archive of a package."""
        return self.transport.retrieve(self._archive_of(name, namespace, which))

    def save_archive(
        self, name: str, namespace: str, which: ArchiveSource, destination: Path
    ) -> Path:
        """Write the source or deployment archive of a package to a file."""
        return self.transport.save(self._archive_of(name, namespace, which), destination)

    def _archive_of(self, name: str, namespace: str, which: ArchiveSource) -> Archive:
        package = self.packages.get(name, namespace)
        archive = package.spec.source if which == ArchiveSource.SOURCE else package.spec.deployment
        if archive is None:
            raise InputError(f"package {namespace}/{name} has no {which.value} archive")
        return archive
