"""Package record manager — creation, update and rebuild of package records.

Ordering within an update is fixed: archives are built and stored first,
then the build status is decided from what actually changed, then spec and
status are written together in a single update carrying the revision that
was read.  A failure before that write leaves the record untouched; a stale
revision is refused by the store and surfaced as ``StaleRevisionError``.

Policy checks that involve referencing functions (force flags) live in the
orchestrator; this class only owns the record itself.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import uuid
from collections.abc import Iterator, Sequence
from pathlib import Path

from packsmith.bridge.controller import ControllerClient
from packsmith.core.archive_builder import ArchiveBuilder, kubify_name, random_suffix
from packsmith.core.archive_transport import ArchiveTransport
from packsmith.core.build_status import (
    SpecChange,
    decide_status,
    ensure_rebuildable,
    initial_status,
)
from packsmith.core.errors import InputError
from packsmith.core.spec_registry import SpecRegistry
from packsmith.models.archive import Archive
from packsmith.models.package import (
    EnvironmentReference,
    ObjectMeta,
    Package,
    PackageCreateRequest,
    PackageSpec,
    PackageStatus,
    PackageUpdateRequest,
)

logger = logging.getLogger(__name__)


class PackageManager:
    """Owns the package spec/status lifecycle.

    Parameters
    ----------
    controller:
        Control-plane record store.
    builder:
        Turns input globs into archive locations (or declarative specs).
    transport:
        Stores archive locations as ``Archive`` values.
    registry:
        Declarative spec registry; needed only for ``spec_file`` creates.
    scratch_dir:
        Parent for per-operation scratch directories (system temp if None).
    """

    def __init__(
        self,
        controller: ControllerClient,
        builder: ArchiveBuilder,
        transport: ArchiveTransport,
        *,
        registry: SpecRegistry | None = None,
        scratch_dir: Path | None = None,
    ) -> None:
        self._controller = controller
        self._builder = builder
        self._transport = transport
        self._registry = registry
        self._scratch_dir = scratch_dir

    # ------------------------------------------------------------------
    # Reads and storage-level delete
    # ------------------------------------------------------------------

    def get(self, name: str, namespace: str) -> Package:
        return self._controller.get_package(name, namespace)

    def list_packages(self, namespace: str) -> list[Package]:
        return self._controller.list_packages(namespace)

    def delete(self, name: str, namespace: str) -> None:
        """Remove the record unconditionally; reference checks are the caller's."""
        self._controller.delete_package(name, namespace)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: PackageCreateRequest) -> ObjectMeta:
        """Create a package from source and/or deployment inputs.

        The name is derived from the first input's base name plus a random
        suffix (source inputs win over deployment inputs), or a UUID when
        there is nothing to derive it from.
        """
        if not request.env_name:
            raise InputError("Need --env argument.")
        if not request.src_files and not request.deploy_files:
            raise InputError(
                "Need --src to specify source archive, or use --deploy to specify deployment archive."
            )
        declarative = bool(request.spec_file)

        name = ""
        source: Archive | None = None
        deployment: Archive | None = None
        with self._scratch() as scratch:
            if request.deploy_files:
                deployment = self._make_archive(
                    request.deploy_files, scratch, no_zip=request.no_zip, spec_file=request.spec_file
                )
                name = _derive_name(request.deploy_files)
            if request.src_files:
                source = self._make_archive(
                    request.src_files, scratch, no_zip=False, spec_file=request.spec_file
                )
                name = _derive_name(request.src_files)

        package = Package(
            metadata=ObjectMeta(name=name or str(uuid.uuid4()).lower(), namespace=request.namespace),
            spec=PackageSpec(
                environment=EnvironmentReference(
                    name=request.env_name, namespace=request.env_namespace
                ),
                source=source,
                deployment=deployment,
                build_command=request.build_command,
            ),
            status=PackageStatus(
                build_status=initial_status(has_source=source is not None, declarative=declarative)
            ),
        )

        if declarative:
            return self._record_spec(package, request.spec_file)

        meta = self._controller.create_package(package)
        logger.info("Package '%s' created (status=%s)", meta.name, package.status.build_status.value)
        return meta

    def _record_spec(self, package: Package, spec_file: str) -> ObjectMeta:
        if self._registry is None:
            raise InputError("declarative packages need a spec registry")
        existing = self._registry.package_exists(package)
        if existing is not None:
            logger.info("Re-using previously created package %s", existing.name)
            return existing
        self._registry.save_package(package, spec_file)
        return package.metadata

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, package: Package, request: PackageUpdateRequest) -> ObjectMeta:
        """Apply ``request`` to ``package`` and persist spec and status together.

        Environment name or namespace equal to the current value count as
        unspecified and never trigger a build.
        """
        spec = package.spec
        env = spec.environment
        env_changed = False
        if request.env_name and request.env_name != env.name:
            env = env.model_copy(update={"name": request.env_name})
            env_changed = True
        if request.env_namespace and request.env_namespace != env.namespace:
            env = env.model_copy(update={"namespace": request.env_namespace})
            env_changed = True

        updates: dict = {"environment": env}
        if request.build_command:
            updates["build_command"] = request.build_command

        with self._scratch() as scratch:
            if request.src_files:
                updates["source"] = self._make_archive(request.src_files, scratch, no_zip=False)
            if request.deploy_files:
                updates["deployment"] = self._make_archive(
                    request.deploy_files, scratch, no_zip=request.no_zip
                )

        change = SpecChange(
            environment_changed=env_changed,
            build_command_changed=bool(request.build_command),
            source_replaced=bool(request.src_files),
            deployment_replaced=bool(request.deploy_files),
            force_rebuild=request.force_rebuild,
        )
        status = decide_status(package.status, change)
        logger.debug(
            "Package %s/%s: %s -> %s", package.namespace, package.name,
            package.status.build_status.value, status.build_status.value,
        )

        updated = package.model_copy(
            update={"spec": spec.model_copy(update=updates), "status": status}
        )
        return self._controller.update_package(updated)

    def rebuild(self, name: str, namespace: str) -> ObjectMeta:
        """Retry a failed build by moving the package back to ``pending``."""
        package = self.get(name, namespace)
        ensure_rebuildable(package)
        meta = self.update(package, PackageUpdateRequest(force_rebuild=True))
        logger.info("Retrying build for package %s/%s", namespace, name)
        return meta

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _make_archive(
        self,
        inputs: Sequence[str],
        scratch: Path,
        *,
        no_zip: bool,
        spec_file: str = "",
    ) -> Archive:
        if spec_file:
            return self._builder.declare(inputs, spec_file)
        return self._transport.store(self._builder.build(inputs, scratch, no_zip=no_zip))

    @contextlib.contextmanager
    def _scratch(self) -> Iterator[Path]:
        if self._scratch_dir is not None:
            self._scratch_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="packsmith-", dir=self._scratch_dir) as tmp:
            yield Path(tmp)


def _derive_name(inputs: Sequence[str]) -> str:
    return kubify_name(f"{os.path.basename(inputs[0].rstrip('/'))}-{random_suffix(4)}")
