"""Package record models — spec, status and identity of a buildable package."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packsmith.models.archive import Archive, is_unset_archive


class ObjectMeta(BaseModel):
    """Identity and revision of a control-plane record.

    ``resource_version`` is the optimistic-concurrency token bumped by the
    server on every persisted mutation.  Unknown server fields (uid, labels,
    timestamps) are kept so a read-modify-write round-trips them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    name: str
    namespace: str = "default"
    resource_version: str = Field(default="", alias="resourceVersion")


class EnvironmentReference(BaseModel):
    """The execution environment a package builds against."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str = "default"


class BuildStatus(str, Enum):
    """Lifecycle state of turning a source archive into a deployment archive."""

    NONE = "none"
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PackageSpec(BaseModel):
    """What the package is made of and where it builds."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    environment: EnvironmentReference
    source: Archive | None = None
    deployment: Archive | None = None
    build_command: str = Field(default="", alias="buildcmd")

    @field_validator("source", "deployment", mode="before")
    @classmethod
    def _unset_archive(cls, value: Any) -> Any:
        return None if is_unset_archive(value) else value


class PackageStatus(BaseModel):
    """Build state, advanced by the external build service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    build_status: BuildStatus = Field(default=BuildStatus.NONE, alias="buildstatus")
    build_log: str = Field(default="", alias="buildlog")

    @field_validator("build_status", mode="before")
    @classmethod
    def _empty_status(cls, value: Any) -> Any:
        return value or BuildStatus.NONE


class Package(BaseModel):
    """A named, namespaced unit of buildable code."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    metadata: ObjectMeta
    spec: PackageSpec
    status: PackageStatus = PackageStatus()

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the control plane's field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Operation requests
# ---------------------------------------------------------------------------


class PackageCreateRequest(BaseModel):
    """Inputs for creating a package.

    ``spec_file`` switches to declarative mode: the package and its archive
    descriptions are recorded under the spec directory instead of being
    created on the control plane.
    """

    model_config = ConfigDict(frozen=True)

    env_name: str
    namespace: str = "default"
    env_namespace: str = "default"
    src_files: list[str] = []
    deploy_files: list[str] = []
    build_command: str = ""
    no_zip: bool = False
    spec_file: str = ""


class PackageUpdateRequest(BaseModel):
    """Inputs for updating a package; empty fields leave the spec untouched."""

    model_config = ConfigDict(frozen=True)

    env_name: str = ""
    env_namespace: str = ""
    src_files: list[str] = []
    deploy_files: list[str] = []
    build_command: str = ""
    force_rebuild: bool = False
    no_zip: bool = False

    @property
    def is_empty(self) -> bool:
        return not (
            self.env_name
            or self.env_namespace
            or self.src_files
            or self.deploy_files
            or self.build_command
            or self.force_rebuild
        )
