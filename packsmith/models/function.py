"""Function record models.

Only the function's reference to its package matters here; every other
field the server returns is preserved untouched through ``extra="allow"``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packsmith.models.package import EnvironmentReference, ObjectMeta


class PackageRef(BaseModel):
    """Pins a function to one revision of a package."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    name: str
    namespace: str = "default"
    resource_version: str = Field(default="", alias="resourceversion")


class FunctionPackageRef(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    package_ref: PackageRef = Field(alias="packageref")
    function_name: str = Field(default="", alias="functionName")


class FunctionSpec(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    environment: EnvironmentReference
    package: FunctionPackageRef


class Function(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    metadata: ObjectMeta
    spec: FunctionSpec

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def package_ref(self) -> PackageRef:
        return self.spec.package.package_ref

    def with_package_version(self, resource_version: str) -> Function:
        """Return a copy pinned to ``resource_version`` of its package."""
        ref = self.package_ref.model_copy(update={"resource_version": resource_version})
        package = self.spec.package.model_copy(update={"package_ref": ref})
        spec = self.spec.model_copy(update={"package": package})
        return self.model_copy(update={"spec": spec})

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
