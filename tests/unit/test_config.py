"""Tests for ClientConfig — defaults, env overrides and derived addresses."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from packsmith.config import ARCHIVE_LITERAL_SIZE_LIMIT, ClientConfig


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every test away from any .env file and PACKSMITH_* variables."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("PACKSMITH_"):
            monkeypatch.delenv(key)


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert config.server_url == "http://127.0.0.1:8888"
        assert config.namespace == "default"
        assert config.literal_size_limit == ARCHIVE_LITERAL_SIZE_LIMIT == 256 * 1024
        assert config.storage_external_url == ""
        assert config.storage_service_selector == "application=fission-storage"
        assert config.scratch_dir is None
        assert config.spec_dir == Path("specs")

    def test_proxy_url(self):
        config = ClientConfig(server_url="http://controller.example:8888/")
        assert config.storage_proxy_url == "http://controller.example:8888/proxy/storage"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PACKSMITH_SERVER_URL", "http://env.example:9999")
        monkeypatch.setenv("PACKSMITH_LITERAL_SIZE_LIMIT", "1024")
        monkeypatch.setenv("PACKSMITH_SCRATCH_DIR", "/tmp/packsmith")
        config = ClientConfig()
        assert config.server_url == "http://env.example:9999"
        assert config.literal_size_limit == 1024
        assert config.scratch_dir == Path("/tmp/packsmith")

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("PACKSMITH_NAMESPACE=staging\n")
        assert ClientConfig().namespace == "staging"

    def test_explicit_beats_env(self, monkeypatch):
        monkeypatch.setenv("PACKSMITH_NAMESPACE", "from-env")
        assert ClientConfig(namespace="explicit").namespace == "explicit"
