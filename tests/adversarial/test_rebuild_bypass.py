"""Adversarial tests — attempts to force builds or skip the failed-state gate.

These tests verify that:
1. A rebuild is only accepted from the failed state
2. A refused rebuild writes nothing
3. A deployment replacement cannot be used to leave a package pending
"""

from __future__ import annotations

import pytest

from packsmith.core.errors import BuildStateError, InputError, ResourceNotFoundError
from packsmith.models.package import BuildStatus, PackageCreateRequest, PackageUpdateRequest


@pytest.fixture
def pkg(orchestrator, make_file) -> str:
    return orchestrator.build_package(
        PackageCreateRequest(env_name="python", src_files=[str(make_file())])
    ).name


class TestRebuildGate:
    @pytest.mark.parametrize(
        "status",
        [BuildStatus.NONE, BuildStatus.PENDING, BuildStatus.RUNNING, BuildStatus.SUCCEEDED],
    )
    def test_refused_rebuild_changes_nothing(self, orchestrator, controller, pkg, status):
        controller.set_build_status(pkg, "default", status, "log")
        before = controller.get_package(pkg, "default")
        with pytest.raises(BuildStateError):
            orchestrator.rebuild_package(pkg, "default")
        assert controller.get_package(pkg, "default") == before

    def test_repeated_rebuild_only_first_wins(self, orchestrator, controller, pkg):
        controller.set_build_status(pkg, "default", BuildStatus.FAILED)
        orchestrator.rebuild_package(pkg, "default")
        with pytest.raises(BuildStateError):
            orchestrator.rebuild_package(pkg, "default")

    def test_rebuild_of_missing_package(self, orchestrator):
        with pytest.raises(ResourceNotFoundError):
            orchestrator.rebuild_package("ghost", "default")


class TestDeploymentCannotLeavePending:
    def test_deploy_update_cancels_owed_build(self, orchestrator, controller, pkg, make_file):
        assert controller.get_package(pkg, "default").status.build_status == BuildStatus.PENDING
        orchestrator.update_package(
            pkg,
            "default",
            PackageUpdateRequest(
                env_name="other-env", build_command="make", deploy_files=[str(make_file("d.zip", b"d"))]
            ),
        )
        assert controller.get_package(pkg, "default").status.build_status == BuildStatus.SUCCEEDED

    def test_source_and_deploy_together_refused(self, orchestrator, controller, pkg, make_file):
        before = controller.get_package(pkg, "default")
        with pytest.raises(InputError):
            orchestrator.update_package(
                pkg,
                "default",
                PackageUpdateRequest(
                    src_files=[str(make_file("s.py"))], deploy_files=[str(make_file("d.zip"))]
                ),
            )
        assert controller.get_package(pkg, "default") == before
