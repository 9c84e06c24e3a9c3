"""Tests for PackageOrchestrator — force policy, fan-out, deletion and archives."""

from __future__ import annotations

import pytest

from packsmith.bridge.controller import HttpControllerClient
from packsmith.bridge.storage import HttpStorageClient
from packsmith.core.errors import (
    FunctionSyncError,
    InputError,
    OrphanSweepError,
    PackageInUseError,
    ResourceNotFoundError,
    SharedPackageError,
    TransportError,
)
from packsmith.core.orchestrator import PackageOrchestrator
from packsmith.models.archive import ArchiveSource
from packsmith.models.package import BuildStatus, PackageCreateRequest, PackageUpdateRequest


@pytest.fixture
def pkg(orchestrator, make_file) -> str:
    """Name of a freshly created source package."""
    meta = orchestrator.build_package(
        PackageCreateRequest(env_name="python", src_files=[str(make_file())])
    )
    return meta.name


class TestWiring:
    def test_builds_http_clients_from_config(self, config):
        orchestrator = PackageOrchestrator(config)
        assert isinstance(orchestrator.controller, HttpControllerClient)
        assert len(orchestrator._owned) == 2
        orchestrator.close()

    def test_injected_clients_not_owned(self, orchestrator, controller):
        assert orchestrator.controller is controller
        assert orchestrator._owned == []

    def test_storage_discovery_uses_controller(self, config, controller):
        orchestrator = PackageOrchestrator(config.model_copy(update={"storage_external_url": ""}), controller=controller)
        storage = next(c for c in orchestrator._owned if isinstance(c, HttpStorageClient))
        assert storage.url_for("x") == "http://storagesvc.fission/v1/archive?id=x"
        orchestrator.close()

    def test_context_manager(self, config, controller, storage):
        with PackageOrchestrator(config, controller=controller, storage=storage) as orchestrator:
            assert orchestrator.list_packages("default") == []


class TestUpdatePolicy:
    def test_src_and_deploy_together_rejected(self, orchestrator, pkg, make_file):
        request = PackageUpdateRequest(src_files=[str(make_file())], deploy_files=[str(make_file("d.zip"))])
        with pytest.raises(InputError, match="not both"):
            orchestrator.update_package(pkg, "default", request)

    def test_empty_request_rejected(self, orchestrator, pkg):
        with pytest.raises(InputError, match="--buildcmd"):
            orchestrator.update_package(pkg, "default", PackageUpdateRequest())

    def test_missing_package(self, orchestrator):
        with pytest.raises(ResourceNotFoundError):
            orchestrator.update_package("ghost", "default", PackageUpdateRequest(build_command="x"))

    def test_single_function_needs_no_force(self, orchestrator, controller, pkg, add_function):
        add_function("fn-a", pkg)
        result = orchestrator.update_package(pkg, "default", PackageUpdateRequest(build_command="make"))
        assert result.sync.updated == ["fn-a"]
        pinned = controller.get_function("fn-a", "default").package_ref.resource_version
        assert pinned == result.package.resource_version

    def test_shared_package_needs_force(self, orchestrator, controller, pkg, add_function):
        add_function("fn-a", pkg)
        add_function("fn-b", pkg)
        before = controller.get_package(pkg, "default")
        with pytest.raises(SharedPackageError) as excinfo:
            orchestrator.update_package(pkg, "default", PackageUpdateRequest(build_command="make"))
        assert excinfo.value.functions == ["fn-a", "fn-b"]
        assert controller.get_package(pkg, "default") == before

    def test_shared_package_with_force(self, orchestrator, controller, pkg, add_function):
        add_function("fn-a", pkg)
        add_function("fn-b", pkg)
        result = orchestrator.update_package(
            pkg, "default", PackageUpdateRequest(build_command="make"), force=True
        )
        assert sorted(result.sync.updated) == ["fn-a", "fn-b"]

    def test_unrelated_functions_untouched(self, orchestrator, controller, pkg, add_function):
        add_function("other-fn", "other-pkg")
        orchestrator.update_package(pkg, "default", PackageUpdateRequest(build_command="make"))
        assert controller.get_function("other-fn", "default").package_ref.resource_version == ""

    def test_partial_fan_out_keeps_package_update(
        self, orchestrator, controller, pkg, add_function, monkeypatch
    ):
        add_function("fn-a", pkg)
        add_function("fn-b", pkg)
        real_update = controller.update_function

        def flaky_update(function):
            if function.name == "fn-b":
                raise TransportError("connection reset")
            return real_update(function)

        monkeypatch.setattr(controller, "update_function", flaky_update)
        with pytest.raises(FunctionSyncError) as excinfo:
            orchestrator.update_package(
                pkg, "default", PackageUpdateRequest(build_command="make"), force=True
            )

        committed = excinfo.value.package
        assert set(excinfo.value.failures) == {"fn-b"}
        assert controller.get_package(pkg, "default").spec.build_command == "make"
        assert controller.get_package(pkg, "default").metadata.resource_version == committed.resource_version
        assert controller.get_function("fn-a", "default").package_ref.resource_version == committed.resource_version


class TestDelete:
    def test_delete_unreferenced(self, orchestrator, controller, pkg):
        orchestrator.delete_package(pkg, "default")
        assert controller.list_packages("default") == []

    def test_delete_referenced_refused(self, orchestrator, controller, pkg, add_function):
        add_function("fn-a", pkg)
        with pytest.raises(PackageInUseError):
            orchestrator.delete_package(pkg, "default")
        assert controller.get_package(pkg, "default").name == pkg

    def test_delete_referenced_with_force(self, orchestrator, controller, pkg, add_function):
        add_function("fn-a", pkg)
        orchestrator.delete_package(pkg, "default", force=True)
        assert controller.list_packages("default") == []

    def test_delete_missing(self, orchestrator):
        with pytest.raises(ResourceNotFoundError):
            orchestrator.delete_package("ghost", "default")


class TestOrphans:
    def _create(self, orchestrator, make_file, name):
        return orchestrator.build_package(
            PackageCreateRequest(env_name="python", deploy_files=[str(make_file(name))])
        ).name

    def test_list_orphans(self, orchestrator, make_file, add_function):
        used = self._create(orchestrator, make_file, "used.js")
        orphan = self._create(orchestrator, make_file, "orphan.js")
        add_function("fn-a", used)

        names = [p.name for p in orchestrator.list_packages("default", orphans_only=True)]
        assert names == [orphan]
        assert len(orchestrator.list_packages("default")) == 2

    def test_sweep_deletes_only_orphans(self, orchestrator, controller, make_file, add_function):
        used = self._create(orchestrator, make_file, "used.js")
        orphan = self._create(orchestrator, make_file, "orphan.js")
        add_function("fn-a", used)

        assert orchestrator.delete_orphan_packages("default") == [orphan]
        assert [p.name for p in controller.list_packages("default")] == [used]

    def test_sweep_stops_at_first_failure(self, orchestrator, controller, make_file, monkeypatch):
        names = sorted(self._create(orchestrator, make_file, f"p{i}.js") for i in range(3))
        real_delete = controller.delete_package

        def flaky_delete(name, namespace):
            if name == names[1]:
                raise TransportError("connection reset")
            return real_delete(name, namespace)

        monkeypatch.setattr(controller, "delete_package", flaky_delete)
        with pytest.raises(OrphanSweepError) as excinfo:
            orchestrator.delete_orphan_packages("default")

        assert excinfo.value.deleted == [names[0]]
        assert excinfo.value.failed == names[1]
        remaining = [p.name for p in controller.list_packages("default")]
        assert remaining == names[1:]


class TestArchives:
    def test_fetch_source(self, orchestrator, pkg):
        data = b"".join(orchestrator.fetch_archive(pkg, "default", ArchiveSource.SOURCE))
        assert data.startswith(b"PK")

    def test_fetch_missing_deployment(self, orchestrator, pkg):
        with pytest.raises(InputError, match="no deployment archive"):
            orchestrator.fetch_archive(pkg, "default", ArchiveSource.DEPLOYMENT)

    def test_save_deployment(self, orchestrator, big_file, tmp_dir):
        meta = orchestrator.build_package(
            PackageCreateRequest(env_name="python", deploy_files=[str(big_file)])
        )
        dest = orchestrator.save_archive(meta.name, "default", ArchiveSource.DEPLOYMENT, tmp_dir / "out.zip")
        with open(dest, "rb") as fh:
            assert fh.read(2) == b"PK"

    def test_package_info(self, orchestrator, controller, pkg):
        controller.set_build_status(pkg, "default", BuildStatus.FAILED, "error: missing module")
        info = orchestrator.package_info(pkg, "default")
        assert info.status.build_log == "error: missing module"
