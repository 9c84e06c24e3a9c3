"""Tests for the build-status decision table."""

from __future__ import annotations

import pytest

from packsmith.core.build_status import (
    REBUILDABLE,
    SpecChange,
    decide_status,
    ensure_rebuildable,
    initial_status,
)
from packsmith.core.errors import BuildStateError
from packsmith.models.package import (
    BuildStatus,
    EnvironmentReference,
    ObjectMeta,
    Package,
    PackageSpec,
    PackageStatus,
)


def _package(status: BuildStatus) -> Package:
    return Package(
        metadata=ObjectMeta(name="pkg"),
        spec=PackageSpec(environment=EnvironmentReference(name="python")),
        status=PackageStatus(build_status=status),
    )


class TestStateSets:
    def test_only_failed_is_rebuildable(self):
        assert REBUILDABLE == {BuildStatus.FAILED}


class TestInitialStatus:
    def test_source_is_pending(self):
        assert initial_status(has_source=True) == BuildStatus.PENDING
        assert initial_status(has_source=True, declarative=True) == BuildStatus.PENDING

    def test_deploy_only_is_succeeded(self):
        assert initial_status(has_source=False) == BuildStatus.SUCCEEDED

    def test_declarative_deploy_only_is_none(self):
        assert initial_status(has_source=False, declarative=True) == BuildStatus.NONE


class TestOwesBuild:
    @pytest.mark.parametrize(
        "change",
        [
            SpecChange(environment_changed=True),
            SpecChange(build_command_changed=True),
            SpecChange(source_replaced=True),
            SpecChange(force_rebuild=True),
            SpecChange(deployment_replaced=True, force_rebuild=True),
        ],
    )
    def test_owes(self, change):
        assert change.owes_build

    @pytest.mark.parametrize(
        "change",
        [
            SpecChange(),
            SpecChange(deployment_replaced=True),
            SpecChange(deployment_replaced=True, environment_changed=True),
            SpecChange(deployment_replaced=True, build_command_changed=True),
        ],
    )
    def test_does_not_owe(self, change):
        assert not change.owes_build


class TestDecideStatus:
    def test_pending_clears_log(self):
        current = PackageStatus(build_status=BuildStatus.FAILED, build_log="boom")
        decided = decide_status(current, SpecChange(source_replaced=True))
        assert decided == PackageStatus(build_status=BuildStatus.PENDING, build_log="")

    def test_deployment_replacement_succeeds(self):
        current = PackageStatus(build_status=BuildStatus.FAILED, build_log="boom")
        decided = decide_status(current, SpecChange(deployment_replaced=True))
        assert decided.build_status == BuildStatus.SUCCEEDED
        assert decided.build_log == ""

    @pytest.mark.parametrize("status", list(BuildStatus))
    def test_no_change_keeps_status(self, status):
        current = PackageStatus(build_status=status, build_log="log")
        assert decide_status(current, SpecChange()) is current


class TestEnsureRebuildable:
    def test_failed_is_rebuildable(self):
        ensure_rebuildable(_package(BuildStatus.FAILED))

    @pytest.mark.parametrize(
        "status", [s for s in BuildStatus if s != BuildStatus.FAILED]
    )
    def test_other_states_refused(self, status):
        with pytest.raises(BuildStateError) as excinfo:
            ensure_rebuildable(_package(status))
        assert excinfo.value.status == status
        assert "not in failed state" in str(excinfo.value)
