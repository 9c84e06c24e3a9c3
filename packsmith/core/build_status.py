"""Package build-status state machine.

States
------
* ``none`` / ``succeeded`` — stable, no build owed.
* ``pending`` / ``running`` — build owed or in progress; owned by the
  external build service.
* ``failed`` — terminal until an explicit rebuild.

This module only decides when a package moves *to* ``pending`` (a build is
owed) or, after a deployment archive replacement, back to ``succeeded``.
``running``, ``succeeded`` and ``failed`` are otherwise set by the build
service.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from packsmith.core.errors import BuildStateError
from packsmith.models.package import BuildStatus, Package, PackageStatus

# Statuses from which an explicit rebuild may be requested.
REBUILDABLE: frozenset[BuildStatus] = frozenset({BuildStatus.FAILED})


class SpecChange(BaseModel):
    """What an update operation actually changed in a package spec."""

    model_config = ConfigDict(frozen=True)

    environment_changed: bool = False
    build_command_changed: bool = False
    source_replaced: bool = False
    deployment_replaced: bool = False
    force_rebuild: bool = False

    @property
    def owes_build(self) -> bool:
        """Whether the change requires the build service to run again.

        A replaced deployment archive is assumed pre-built and cancels every
        other trigger; only ``force_rebuild`` overrides that.
        """
        if self.force_rebuild:
            return True
        if self.deployment_replaced:
            return False
        return self.environment_changed or self.build_command_changed or self.source_replaced


def initial_status(*, has_source: bool, declarative: bool = False) -> BuildStatus:
    """Build status of a newly created package.

    A source archive always needs building.  A deployment-only package has
    nothing to build, except that a declarative record starts at ``none``
    since nothing has been realized yet.
    """
    if has_source:
        return BuildStatus.PENDING
    return BuildStatus.NONE if declarative else BuildStatus.SUCCEEDED


def decide_status(current: PackageStatus, change: SpecChange) -> PackageStatus:
    """Return the status to persist alongside an updated spec.

    A fresh ``pending`` status (empty build log) when a build is owed;
    ``succeeded`` when a new deployment archive was supplied; otherwise the
    current status, untouched.
    """
    if change.owes_build:
        return PackageStatus(build_status=BuildStatus.PENDING)
    if change.deployment_replaced:
        return PackageStatus(build_status=BuildStatus.SUCCEEDED)
    return current


def ensure_rebuildable(package: Package) -> None:
    """Raise ``BuildStateError`` unless the package's last build failed."""
    status = package.status.build_status
    if status not in REBUILDABLE:
        raise BuildStateError(package.name, package.namespace, status)
