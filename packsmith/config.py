"""Client configuration — env-driven, passed explicitly to every component.

Reads from a .env file and PACKSMITH_* environment variables.  There is no
module-level instance: the CLI (or a test) builds one and hands it to the
``PackageOrchestrator``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Archives smaller than this are embedded in the package record.
ARCHIVE_LITERAL_SIZE_LIMIT = 256 * 1024


class ClientConfig(BaseSettings):
    """Connection and packaging settings.

    Two storage addresses are kept apart on purpose: uploads and downloads
    go through the controller's proxy (``storage_proxy_url``), while the URL
    recorded in a package is built from ``storage_external_url`` so that it
    stays valid for whoever fetches it later.

    Examples
    --------
    Override via environment::

        export PACKSMITH_SERVER_URL=http://controller.example:8888
        export PACKSMITH_STORAGE_EXTERNAL_URL=http://storagesvc.fission
        export PACKSMITH_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PACKSMITH_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Control plane
    server_url: str = "http://127.0.0.1:8888"
    namespace: str = "default"
    http_timeout_seconds: float = 30.0

    # Blob store
    storage_external_url: str = ""  # discovered from the control plane when empty
    storage_service_selector: str = "application=fission-storage"

    # Packaging
    literal_size_limit: int = ARCHIVE_LITERAL_SIZE_LIMIT
    spec_dir: Path = Path("specs")
    scratch_dir: Path | None = None  # system temp dir when unset

    log_level: str = "INFO"

    @property
    def storage_proxy_url(self) -> str:
        """Blob store address routed through the control-plane front door."""
        return self.server_url.rstrip("/") + "/proxy/storage"
