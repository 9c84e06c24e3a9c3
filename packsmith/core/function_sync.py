"""Dependent-function synchronizer.

After a package revision is committed, every function in the package's
namespace that references it by name is re-pinned to the new
``resourceVersion``.  Each function is updated independently: one failure is
recorded and the fan-out carries on with the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from packsmith.bridge.controller import ControllerClient
from packsmith.core.errors import PacksmithError
from packsmith.models.function import Function

logger = logging.getLogger(__name__)


class SyncReport(BaseModel):
    """Outcome of one fan-out."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    resource_version: str
    updated: list[str] = Field(default_factory=list)
    failures: dict[str, PacksmithError] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class FunctionSynchronizer:
    """Finds functions that reference a package and re-pins them.

    Parameters
    ----------
    controller:
        Control-plane record store.
    """

    def __init__(self, controller: ControllerClient) -> None:
        self._controller = controller

    def functions_referencing(self, pkg_name: str, pkg_namespace: str) -> list[Function]:
        """All functions in ``pkg_namespace`` whose package reference is ``pkg_name``."""
        return [
            fn
            for fn in self._controller.list_functions(pkg_namespace)
            if fn.package_ref.name == pkg_name
        ]

    def referenced_packages(self, namespace: str) -> set[str]:
        """Names of packages in ``namespace`` referenced by at least one function."""
        return {fn.package_ref.name for fn in self._controller.list_functions(namespace)}

    def propagate(self, functions: Iterable[Function], resource_version: str) -> SyncReport:
        """Pin every function to ``resource_version`` and persist it.

        Only call this once the package write carrying ``resource_version``
        has been acknowledged by the store.
        """
        updated: list[str] = []
        failures: dict[str, PacksmithError] = {}
        for fn in functions:
            try:
                self._controller.update_function(fn.with_package_version(resource_version))
            except PacksmithError as exc:
                logger.warning(
                    "Failed to sync function %s/%s to package revision %s: %s",
                    fn.metadata.namespace, fn.name, resource_version, exc,
                )
                failures[fn.name] = exc
            else:
                updated.append(fn.name)
        logger.info(
            "Synced %d function(s) to package revision %s (%d failed)",
            len(updated), resource_version, len(failures),
        )
        return SyncReport(resource_version=resource_version, updated=updated, failures=failures)
