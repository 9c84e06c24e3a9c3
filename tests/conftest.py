"""Shared test fixtures for Packsmith."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from packsmith.bridge.memory import InMemoryController, InMemoryStorage
from packsmith.config import ClientConfig
from packsmith.core.orchestrator import PackageOrchestrator
from packsmith.models.function import Function
from packsmith.models.package import EnvironmentReference, ObjectMeta


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def controller() -> InMemoryController:
    """Provide an empty in-memory control plane."""
    return InMemoryController()


@pytest.fixture
def storage() -> InMemoryStorage:
    """Provide an empty in-memory blob store."""
    return InMemoryStorage()


@pytest.fixture
def config(tmp_dir: Path) -> ClientConfig:
    """Provide a ClientConfig whose spec and scratch dirs live under tmp."""
    return ClientConfig(
        spec_dir=tmp_dir / "specs",
        scratch_dir=tmp_dir / "scratch",
        storage_external_url="http://storagesvc.fission",
    )


@pytest.fixture
def orchestrator(
    config: ClientConfig, controller: InMemoryController, storage: InMemoryStorage
) -> PackageOrchestrator:
    """Provide a PackageOrchestrator wired to the in-memory backends."""
    return PackageOrchestrator(config, controller=controller, storage=storage)


# ---------------------------------------------------------------------------
# Input file factories — shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_file(tmp_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write a file under tmp and return its path."""

    def _factory(name: str = "hello.py", content: bytes = b"print('hello')\n") -> Path:
        path = tmp_dir / "inputs" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _factory


@pytest.fixture
def big_file(make_file: Callable[..., Path]) -> Path:
    """A file at exactly the literal size limit, so it must be uploaded."""
    return make_file("big.bin", b"x" * (256 * 1024))


# ---------------------------------------------------------------------------
# Function record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_function() -> Callable[..., Function]:
    """Factory fixture: build a Function referencing a package by name."""

    def _factory(
        name: str = "fn-a",
        package: str = "pkg",
        namespace: str = "default",
        resource_version: str = "",
        **overrides: Any,
    ) -> Function:
        data: dict[str, Any] = {
            "metadata": ObjectMeta(name=name, namespace=namespace),
            "spec": {
                "environment": EnvironmentReference(name="python"),
                "package": {
                    "packageref": {
                        "name": package,
                        "namespace": namespace,
                        "resourceversion": resource_version,
                    },
                    "functionName": "main",
                },
            },
        }
        data.update(overrides)
        return Function.model_validate(data)

    return _factory


@pytest.fixture
def add_function(
    controller: InMemoryController, make_function: Callable[..., Function]
) -> Callable[..., Function]:
    """Factory fixture: create a function in the in-memory control plane."""

    def _factory(name: str, package: str, namespace: str = "default") -> Function:
        function = make_function(name=name, package=package, namespace=namespace)
        controller.create_function(function)
        return controller.get_function(name, namespace)

    return _factory
